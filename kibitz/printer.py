"""Diff rendering through git and the external ``delta`` printer.

A render is two steps: git produces the raw unified diff for a selection, and
the printer turns it into styled text. Output is sanitized of terminal
side-effect sequences; SGR styling is kept verbatim. Results are memoized in
:class:`RenderCache`, keyed by selection, mode, commit depth and generation.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
import sys
from collections import OrderedDict
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from .ansi import sanitize_printer_output
from .change_tree import ChangeTree, DiffMode, FileNode, FileStatus, default_mode
from .commits import CommitInfo
from .errors import EnvironmentCheckError, RenderError
from .git import commit_diff_range, run_git

logger = logging.getLogger(__name__)

DEFAULT_PRINTER = "delta"
PRINTER_TIMEOUT_SECONDS = 15.0
RENDER_CACHE_MAX = 64
THEME_FEATURES = {
    "dark": "protanopia-dark",
    "light": "protanopia-light",
}

CacheKey = tuple[str, DiffMode, int, int]


@dataclass(frozen=True)
class DiffTarget:
    """One file contributing to a rendered diff."""

    path: str
    status: FileStatus
    mode: DiffMode = DiffMode.UNSTAGED
    renamed_from: str | None = None


@dataclass(frozen=True)
class RenderRequest:
    """Everything the render worker needs, captured at request time."""

    path: str
    mode: DiffMode
    depth: int
    generation: int
    seq: int
    width: int
    targets: tuple[DiffTarget, ...] = ()
    commit: CommitInfo | None = None

    @property
    def key(self) -> CacheKey:
        return (self.path, self.mode, self.depth, self.generation)


def build_targets(
    tree: ChangeTree,
    path: str,
    mode: DiffMode,
) -> tuple[DiffTarget, ...]:
    """Expand a selected path into per-file diff targets.

    A folder contributes every file below it, each in its default mode. A file
    uses the selection's mode.
    """
    node = tree.find(path)
    if node is None:
        return ()
    if isinstance(node, FileNode):
        return (DiffTarget(node.path, node.status, mode, node.renamed_from),)
    targets: list[DiffTarget] = []
    for file_path in tree.files_under(path):
        child = tree.find(file_path)
        if isinstance(child, FileNode):
            targets.append(
                DiffTarget(child.path, child.status, default_mode(child), child.renamed_from)
            )
    return tuple(targets)


def raw_diff_args(target: DiffTarget, commit: CommitInfo | None = None) -> list[str]:
    """Return git arguments producing the raw diff for one target."""
    pathspec = [target.path]
    if target.renamed_from and target.renamed_from != target.path:
        pathspec.append(target.renamed_from)

    if commit is not None:
        return ["diff-tree", "-p", "-M", "--no-color", *commit_diff_range(commit), "--", *pathspec]
    if target.status is FileStatus.UNTRACKED:
        return ["diff", "--no-index", "--no-color", "--", "/dev/null", target.path]
    if target.mode is DiffMode.STAGED:
        return ["diff", "--cached", "-M", "--no-color", "--", *pathspec]
    return ["diff", "-M", "--no-color", "--", *pathspec]


def produce_raw_diff(repo_root: Path, request: RenderRequest) -> str:
    """Concatenate the raw diffs of every target in ``request``."""
    chunks: list[str] = []
    for target in request.targets:
        args = raw_diff_args(target, request.commit)
        proc = run_git(repo_root, args)
        if proc is None:
            raise RenderError(f"git diff could not be run for {target.path}")
        # --no-index exits 1 when the files differ.
        ok_codes = {0, 1} if "--no-index" in args else {0}
        if proc.returncode not in ok_codes:
            detail = proc.stderr.strip().splitlines()
            message = detail[-1] if detail else f"exit status {proc.returncode}"
            raise RenderError(f"git diff failed for {target.path}: {message}")
        if proc.stdout:
            chunks.append(proc.stdout if proc.stdout.endswith("\n") else proc.stdout + "\n")
    return "".join(chunks)


def detect_theme_feature(theme: str | None = None) -> str:
    """Return the delta feature name for ``theme`` or the system appearance.

    Only macOS exposes a readable appearance setting; elsewhere dark is used.
    """
    if theme:
        feature = THEME_FEATURES.get(theme.strip().lower())
        if feature is not None:
            return feature
        logger.warning("unknown printer theme %r; auto-detecting", theme)
    if sys.platform != "darwin":
        return THEME_FEATURES["dark"]
    try:
        proc = subprocess.run(
            ["defaults", "read", "-g", "AppleInterfaceStyle"],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            check=False,
            timeout=2.0,
        )
    except (OSError, subprocess.SubprocessError):
        return THEME_FEATURES["dark"]
    return THEME_FEATURES["dark"] if proc.returncode == 0 else THEME_FEATURES["light"]


def check_printer_available(command: Sequence[str]) -> str:
    """Return the resolved printer executable or raise :class:`EnvironmentCheckError`."""
    if not command:
        raise EnvironmentCheckError("no diff printer configured")
    resolved = shutil.which(command[0])
    if resolved is None:
        raise EnvironmentCheckError(
            f"{command[0]!r} not found on PATH; install delta (https://github.com/dandavison/delta)"
        )
    return resolved


@dataclass
class DiffPrinter:
    """External printer invocation: fixed defaults, width, then user extras."""

    command: tuple[str, ...] = (DEFAULT_PRINTER,)
    extra_args: str = ""
    theme_feature: str = THEME_FEATURES["dark"]
    timeout_seconds: float = PRINTER_TIMEOUT_SECONDS
    _extra: list[str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        try:
            self._extra = shlex.split(self.extra_args)
        except ValueError as exc:
            logger.warning("ignoring unparseable printer arguments %r: %s", self.extra_args, exc)
            self._extra = []

    def argv(self, width: int) -> list[str]:
        return [
            *self.command,
            "--paging=never",
            f"--features={self.theme_feature}",
            f"--width={max(1, int(width))}",
            *self._extra,
        ]

    def render_raw(self, raw_diff: str, width: int) -> str:
        """Pipe ``raw_diff`` through the printer and return sanitized output."""
        if not raw_diff:
            return ""
        argv = self.argv(width)
        try:
            proc = subprocess.run(
                argv,
                input=raw_diff.encode("utf-8", errors="replace"),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=False,
                timeout=self.timeout_seconds,
            )
        except subprocess.TimeoutExpired as exc:
            raise RenderError(f"{argv[0]} timed out after {self.timeout_seconds:g}s") from exc
        except OSError as exc:
            raise RenderError(f"could not start {argv[0]}: {exc}") from exc
        if proc.returncode != 0:
            detail = proc.stderr.decode("utf-8", errors="replace").strip().splitlines()
            message = detail[-1] if detail else f"exit status {proc.returncode}"
            raise RenderError(f"{Path(argv[0]).name} failed: {message}")
        return sanitize_printer_output(proc.stdout.decode("utf-8", errors="replace"))

    def render(self, repo_root: Path, request: RenderRequest) -> str:
        """Produce the styled diff for ``request``; raises :class:`RenderError`."""
        raw = produce_raw_diff(repo_root, request)
        return self.render_raw(raw, request.width)


class RenderCache:
    """Small LRU of rendered text keyed by ``(path, mode, depth, generation)``."""

    def __init__(self, max_entries: int = RENDER_CACHE_MAX) -> None:
        self.max_entries = max(1, int(max_entries))
        self._entries: OrderedDict[CacheKey, str] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: CacheKey) -> str | None:
        if key not in self._entries:
            return None
        self._entries.move_to_end(key)
        return self._entries[key]

    def put(self, key: CacheKey, text: str) -> None:
        self._entries[key] = text
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def invalidate(self) -> None:
        self._entries.clear()
