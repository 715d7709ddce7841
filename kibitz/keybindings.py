"""Key-token to action mapping and the help table built from it.

Key tokens come from :func:`kibitz.keys.read_key`. Keep ``KEYBINDINGS`` in
sync with ``_KEY_ACTIONS``; the help overlay is generated from it.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

MOUSE_WHEEL_LINES = 3


class Action(enum.Enum):
    QUIT = "quit"
    TOGGLE_HELP = "toggle_help"
    REFRESH = "refresh"
    MOVE_DOWN = "move_down"
    MOVE_UP = "move_up"
    EXPAND = "expand"
    OPEN = "open"
    COLLAPSE = "collapse"
    SCROLL_LINE_DOWN = "scroll_line_down"
    SCROLL_LINE_UP = "scroll_line_up"
    SCROLL_HALF_DOWN = "scroll_half_down"
    SCROLL_HALF_UP = "scroll_half_up"
    SCROLL_PAGE_DOWN = "scroll_page_down"
    SCROLL_PAGE_UP = "scroll_page_up"
    WHEEL_DOWN = "wheel_down"
    WHEEL_UP = "wheel_up"
    NEXT_HUNK = "next_hunk"
    PREV_HUNK = "prev_hunk"
    GO_TOP = "go_top"
    GO_BOTTOM = "go_bottom"
    TOGGLE_TREE = "toggle_tree"
    TOGGLE_MODE = "toggle_mode"
    COMMIT_BACK = "commit_back"
    COMMIT_FORWARD = "commit_forward"


_KEY_ACTIONS: dict[tuple[str, ...], Action] = {
    ("q", "CTRL_C"): Action.QUIT,
    ("?",): Action.TOGGLE_HELP,
    ("r", "CTRL_L"): Action.REFRESH,
    ("j", "DOWN"): Action.MOVE_DOWN,
    ("k", "UP"): Action.MOVE_UP,
    ("l", "RIGHT"): Action.EXPAND,
    ("ENTER",): Action.OPEN,
    ("h", "LEFT"): Action.COLLAPSE,
    ("ALT_j", "ALT_DOWN"): Action.SCROLL_LINE_DOWN,
    ("ALT_k", "ALT_UP"): Action.SCROLL_LINE_UP,
    ("CTRL_J", "CTRL_D"): Action.SCROLL_HALF_DOWN,
    ("CTRL_K", "CTRL_U"): Action.SCROLL_HALF_UP,
    (" ", "PAGE_DOWN"): Action.SCROLL_PAGE_DOWN,
    ("PAGE_UP",): Action.SCROLL_PAGE_UP,
    ("J", "SHIFT_DOWN"): Action.NEXT_HUNK,
    ("K", "SHIFT_UP"): Action.PREV_HUNK,
    ("g", "HOME"): Action.GO_TOP,
    ("G", "END"): Action.GO_BOTTOM,
    ("t",): Action.TOGGLE_TREE,
    ("s",): Action.TOGGLE_MODE,
    ("[",): Action.COMMIT_BACK,
    ("]",): Action.COMMIT_FORWARD,
}

_ACTION_BY_KEY: dict[str, Action] = {
    combo: action for combos, action in _KEY_ACTIONS.items() for combo in combos
}


def action_for_key(key: str) -> Action | None:
    """Map a key token to an action; ``None`` for unbound keys."""
    if key.startswith("MOUSE_WHEEL_DOWN"):
        return Action.WHEEL_DOWN
    if key.startswith("MOUSE_WHEEL_UP"):
        return Action.WHEEL_UP
    return _ACTION_BY_KEY.get(key)


@dataclass(frozen=True)
class Keybinding:
    keys: str
    description: str
    category: str


CATEGORIES = ("General", "File Tree", "Diff Scrolling", "Toggles", "History")

KEYBINDINGS: tuple[Keybinding, ...] = (
    Keybinding("q / Ctrl+C", "Quit", "General"),
    Keybinding("?", "Toggle help", "General"),
    Keybinding("r", "Refresh now", "General"),
    Keybinding("j / k / ↓ / ↑", "Navigate files", "File Tree"),
    Keybinding("l / Enter / →", "Expand folder", "File Tree"),
    Keybinding("h / ←", "Collapse / go to parent", "File Tree"),
    Keybinding("j / Enter, k", "Horizontal: into folder, to parent", "File Tree"),
    Keybinding("h / l", "Horizontal: previous / next sibling", "File Tree"),
    Keybinding("Alt + (j / k / ↓ / ↑)", "Scroll line by line", "Diff Scrolling"),
    Keybinding("Ctrl + (j / k / d / u)", "Scroll half page", "Diff Scrolling"),
    Keybinding("Space / PgDn / PgUp", "Scroll page", "Diff Scrolling"),
    Keybinding("g / Home", "Top of diff", "Diff Scrolling"),
    Keybinding("G / End", "Bottom of diff", "Diff Scrolling"),
    Keybinding("J / K / Shift + (↓ / ↑)", "Next / prev hunk", "Diff Scrolling"),
    Keybinding("t", "Toggle file tree", "Toggles"),
    Keybinding("s", "Toggle staged / unstaged", "Toggles"),
    Keybinding("[ / ]", "Older / newer commit", "History"),
)


def grouped_keybindings() -> list[tuple[str, list[Keybinding]]]:
    """Return ``KEYBINDINGS`` grouped by category in display order."""
    groups: list[tuple[str, list[Keybinding]]] = []
    for category in CATEGORIES:
        entries = [binding for binding in KEYBINDINGS if binding.category == category]
        if entries:
            groups.append((category, entries))
    return groups
