"""TOML configuration discovery and merging.

Reads the global file under the platform config directory, then the
repository-local ``.kibitz.toml``, merging field by field. Loading is
tolerant: missing files are skipped, malformed files and wrongly typed values
are skipped with a warning.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path

from platformdirs import user_config_dir

from .theme import COLOR_ROLES, DEFAULT_COLORS, ColorConfig

logger = logging.getLogger(__name__)

APP_NAME = "kibitz"
CONFIG_FILENAME = "config.toml"
LOCAL_CONFIG_FILENAME = ".kibitz.toml"
DEFAULT_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME

DEFAULT_DEBOUNCE_MS = 200
DEFAULT_HISTORY_LIMIT = 500
DEFAULT_LAYOUT_MAX_ROWS = 5
_THEMES = ("dark", "light")
LAYOUT_MODES = ("vertical", "horizontal")


@dataclass(frozen=True)
class Config:
    """Validated settings handed to the session."""

    printer_args: str = ""
    theme: str | None = None
    colors: ColorConfig = field(default_factory=lambda: DEFAULT_COLORS)
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    history_limit: int = DEFAULT_HISTORY_LIMIT
    watch: bool = True
    layout_mode: str = "vertical"
    layout_max_rows: int = DEFAULT_LAYOUT_MAX_ROWS


def _read_toml(path: Path) -> dict[str, object]:
    """Return the parsed table at ``path``, or ``{}`` when missing or malformed."""
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        return {}
    except OSError as exc:
        logger.warning("cannot read config %s: %s", path, exc)
        return {}
    try:
        data = tomllib.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        logger.warning("ignoring malformed config %s: %s", path, exc)
        return {}
    return data


def _table(data: dict[str, object], name: str, source: Path) -> dict[str, object]:
    value = data.get(name, {})
    if isinstance(value, dict):
        return value
    logger.warning("%s: [%s] must be a table", source, name)
    return {}


def _positive_int(table: dict[str, object], key: str, source: Path, minimum: int = 0) -> int | None:
    if key not in table:
        return None
    value = table[key]
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        logger.warning("%s: %s must be an integer >= %d, got %r", source, key, minimum, value)
        return None
    return value


def merge_config(base: Config, data: dict[str, object], source: Path) -> Config:
    """Apply one parsed TOML document on top of ``base``."""
    updates: dict[str, object] = {}

    delta = _table(data, "delta", source)
    if "args" in delta:
        if isinstance(delta["args"], str):
            updates["printer_args"] = delta["args"]
        else:
            logger.warning("%s: delta.args must be a string", source)
    if "theme" in delta:
        theme = delta["theme"]
        if isinstance(theme, str) and theme.strip().lower() in _THEMES:
            updates["theme"] = theme.strip().lower()
        else:
            logger.warning("%s: delta.theme must be one of %s", source, ", ".join(_THEMES))

    colors = _table(data, "colors", source)
    specs = {role: spec for role, spec in colors.items() if role in COLOR_ROLES}
    for role in colors:
        if role not in COLOR_ROLES:
            logger.warning("%s: unknown color role %r", source, role)
    if specs:
        updates["colors"] = base.colors.with_specs(specs)

    watch = _table(data, "watch", source)
    debounce = _positive_int(watch, "debounce_ms", source)
    if debounce is not None:
        updates["debounce_ms"] = debounce

    history = _table(data, "history", source)
    limit = _positive_int(history, "limit", source, minimum=1)
    if limit is not None:
        updates["history_limit"] = limit

    layout = _table(data, "layout", source)
    if "mode" in layout:
        mode = layout["mode"]
        if isinstance(mode, str) and mode.strip().lower() in LAYOUT_MODES:
            updates["layout_mode"] = mode.strip().lower()
        else:
            logger.warning("%s: layout.mode must be one of %s", source, ", ".join(LAYOUT_MODES))
    max_rows = _positive_int(layout, "max_rows", source, minimum=1)
    if max_rows is not None:
        updates["layout_max_rows"] = max_rows

    return replace(base, **updates) if updates else base


def config_paths(repo_root: Path | None, global_path: Path | None = None) -> list[Path]:
    paths = [global_path or DEFAULT_CONFIG_PATH]
    if repo_root is not None:
        paths.append(repo_root / LOCAL_CONFIG_FILENAME)
    return paths


def load_config(repo_root: Path | None = None, global_path: Path | None = None) -> Config:
    """Load and merge global then repository-local configuration."""
    config = Config()
    for path in config_paths(repo_root, global_path):
        data = _read_toml(path)
        if data:
            logger.debug("loaded config %s", path)
            config = merge_config(config, data, path)
    return config


def apply_overrides(
    config: Config,
    printer_args: str | None = None,
    debounce_ms: int | None = None,
    no_watch: bool = False,
) -> Config:
    """Layer command-line flags over file configuration."""
    updates: dict[str, object] = {}
    if printer_args is not None:
        updates["printer_args"] = printer_args
    if debounce_ms is not None:
        updates["debounce_ms"] = max(0, int(debounce_ms))
    if no_watch:
        updates["watch"] = False
    return replace(config, **updates) if updates else config
