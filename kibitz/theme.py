"""Semantic color roles and color-spec resolution.

Roles are resolved once into SGR fragments; renderers only concatenate them.
The diff pane itself is never re-colored here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

logger = logging.getLogger(__name__)

RESET = "\033[0m"
REVERSE = "\033[7m"
BOLD = "\033[1m"
DIM = "\033[2m"
UNDERLINE = "\033[4m"

_NAMED_COLORS: dict[str, str] = {
    "black": "30",
    "red": "31",
    "green": "32",
    "yellow": "33",
    "blue": "34",
    "magenta": "35",
    "cyan": "36",
    "gray": "37",
    "grey": "37",
    "darkgray": "90",
    "darkgrey": "90",
    "lightred": "91",
    "lightgreen": "92",
    "lightyellow": "93",
    "lightblue": "94",
    "lightmagenta": "95",
    "lightcyan": "96",
    "white": "97",
}

COLOR_ROLES = ("text", "text_muted", "accent", "success", "warning", "error", "info")


def resolve_color(spec: object) -> str:
    """Return the SGR foreground fragment for a color spec.

    Accepts a 256-color index, a color name, ``default``/``reset``, or
    ``#rrggbb``. Anything else resolves to the terminal default with a
    warning.
    """
    if isinstance(spec, bool):
        logger.warning("invalid color %r; using terminal default", spec)
        return ""
    if isinstance(spec, int):
        if 0 <= spec <= 255:
            return f"\033[38;5;{spec}m"
        logger.warning("color index %d out of range; using terminal default", spec)
        return ""
    if not isinstance(spec, str):
        logger.warning("invalid color %r; using terminal default", spec)
        return ""

    name = spec.strip().lower()
    if name in ("", "default", "reset"):
        return ""
    if name in _NAMED_COLORS:
        return f"\033[{_NAMED_COLORS[name]}m"
    if name.startswith("#") and len(name) == 7:
        try:
            red, green, blue = (int(name[i : i + 2], 16) for i in (1, 3, 5))
        except ValueError:
            pass
        else:
            return f"\033[38;2;{red};{green};{blue}m"
    logger.warning("unknown color %r; using terminal default", spec)
    return ""


@dataclass(frozen=True)
class ColorConfig:
    """Resolved SGR fragments per semantic role.

    Folders, borders and headers use ``accent``; statuses map to
    ``success`` (added), ``warning`` (modified), ``error`` (deleted) and
    ``info`` (renamed).
    """

    text: str = ""
    text_muted: str = "\033[90m"
    accent: str = "\033[38;5;4m"
    success: str = "\033[38;5;2m"
    warning: str = "\033[38;5;3m"
    error: str = "\033[38;5;1m"
    info: str = "\033[38;5;6m"
    reverse: str = REVERSE
    bold: str = BOLD
    dim: str = DIM
    underline: str = UNDERLINE
    reset: str = RESET

    def with_specs(self, specs: dict[str, object]) -> ColorConfig:
        """Return a copy with known roles from ``specs`` resolved and applied."""
        updates: dict[str, str] = {}
        for role, spec in specs.items():
            if role not in COLOR_ROLES:
                logger.warning("unknown color role %r ignored", role)
                continue
            updates[role] = resolve_color(spec)
        return replace(self, **updates) if updates else self


DEFAULT_COLORS = ColorConfig()

PLAIN_COLORS = ColorConfig(
    text="",
    text_muted="",
    accent="",
    success="",
    warning="",
    error="",
    info="",
    bold="",
)


__all__ = [
    "COLOR_ROLES",
    "ColorConfig",
    "DEFAULT_COLORS",
    "PLAIN_COLORS",
    "resolve_color",
]
