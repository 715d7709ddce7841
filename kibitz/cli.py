"""Command-line front door for kibitz.

Parses CLI options, configures logging, checks the environment, and
dispatches into the interactive runtime. Fatal environment problems become
``SystemExit`` with a one-line message before the terminal is touched.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from . import __version__
from .config import apply_overrides, load_config
from .errors import EnvironmentCheckError
from .git import resolve_repo_root
from .printer import DEFAULT_PRINTER, check_printer_available

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _nonnegative_int(value: str) -> int:
    """argparse type for non-negative integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError("value must be >= 0")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kibitz",
        description="Watch a git working tree and browse its changes through delta.",
    )
    parser.add_argument("path", nargs="?", default=None, help="Path inside the repository. Defaults to cwd.")
    parser.add_argument("--delta-args", default=None, metavar="STR", help="Extra arguments appended to delta.")
    parser.add_argument(
        "--debounce-ms",
        type=_nonnegative_int,
        default=None,
        metavar="N",
        help="Quiet period before a filesystem burst triggers a refresh.",
    )
    parser.add_argument("--no-watch", action="store_true", help="Disable hot reload; refresh with r.")
    parser.add_argument("--log-file", type=Path, default=None, metavar="PATH", help="Write debug logs to PATH.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def configure_logging(log_file: Path | None) -> None:
    """Attach a debug file handler; without one, logging stays silent."""
    if log_file is None:
        return
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger = logging.getLogger("kibitz")
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG)


def main(argv: list[str] | None = None, default_path: Path | None = None) -> None:
    """Parse CLI arguments and launch the viewer.

    ``default_path`` is primarily for tests; when omitted the current working
    directory is used.
    """
    args = build_parser().parse_args(argv)
    try:
        configure_logging(args.log_file)
    except OSError as exc:
        raise SystemExit(f"kibitz: cannot open log file: {exc}") from exc

    path = Path(args.path) if args.path else (default_path or Path.cwd())
    try:
        repo_root = resolve_repo_root(path)
        check_printer_available((DEFAULT_PRINTER,))
        config = apply_overrides(
            load_config(repo_root),
            printer_args=args.delta_args,
            debounce_ms=args.debounce_ms,
            no_watch=args.no_watch,
        )
        from .runtime import run_app

        run_app(repo_root, config)
    except EnvironmentCheckError as exc:
        logging.getLogger(__name__).error("%s", exc)
        raise SystemExit(f"kibitz: {exc}") from exc
