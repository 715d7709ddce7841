"""Turn inbox messages and key actions into session transitions."""

from __future__ import annotations

import logging

from ..keybindings import MOUSE_WHEEL_LINES, Action, action_for_key
from ..viewport import Viewport
from .messages import CollectCompleted, KeyPressed, Message, RenderCompleted, WatchTriggered
from .session import Session

logger = logging.getLogger(__name__)


def handle_action(session: Session, action: Action) -> bool:
    """Apply one action; return ``True`` when the loop should stop."""
    state = session.state
    viewport = state.viewport

    if action is Action.QUIT:
        return True
    if state.show_help and action is not Action.TOGGLE_HELP:
        # Any other key closes the overlay.
        session.toggle_help()
        return False

    if action is Action.TOGGLE_HELP:
        session.toggle_help()
    elif action is Action.REFRESH:
        session.refresh()
    elif action in _TREE_ACTIONS:
        _handle_tree(session, action)
    elif action is Action.TOGGLE_TREE:
        session.toggle_tree()
    elif action is Action.TOGGLE_MODE:
        session.toggle_mode()
    elif action is Action.COMMIT_BACK:
        session.step_commit(1)
    elif action is Action.COMMIT_FORWARD:
        session.step_commit(-1)
    else:
        moved = _handle_scroll(viewport, action)
        if moved:
            state.dirty = True
    return False


_TREE_ACTIONS = frozenset({Action.MOVE_DOWN, Action.MOVE_UP, Action.EXPAND, Action.OPEN, Action.COLLAPSE})


def _handle_tree(session: Session, action: Action) -> bool:
    if session.state.horizontal:
        # Rows are siblings here: j/k move between levels, h/l along a row.
        if action in (Action.MOVE_DOWN, Action.OPEN):
            return session.descend()
        if action is Action.MOVE_UP:
            return session.ascend()
        return session.move_sibling(1 if action is Action.EXPAND else -1)
    if action is Action.MOVE_DOWN:
        return session.move_cursor(1)
    if action is Action.MOVE_UP:
        return session.move_cursor(-1)
    if action is Action.COLLAPSE:
        return session.collapse()
    return session.expand()


def _handle_scroll(viewport: Viewport, action: Action) -> bool:
    if action is Action.SCROLL_LINE_DOWN:
        return viewport.scroll_by(1)
    if action is Action.SCROLL_LINE_UP:
        return viewport.scroll_by(-1)
    if action is Action.WHEEL_DOWN:
        return viewport.scroll_by(MOUSE_WHEEL_LINES)
    if action is Action.WHEEL_UP:
        return viewport.scroll_by(-MOUSE_WHEEL_LINES)
    if action is Action.SCROLL_HALF_DOWN:
        return viewport.scroll_page(1, half=True)
    if action is Action.SCROLL_HALF_UP:
        return viewport.scroll_page(-1, half=True)
    if action is Action.SCROLL_PAGE_DOWN:
        return viewport.scroll_page(1)
    if action is Action.SCROLL_PAGE_UP:
        return viewport.scroll_page(-1)
    if action is Action.NEXT_HUNK:
        return viewport.jump_hunk(1)
    if action is Action.PREV_HUNK:
        return viewport.jump_hunk(-1)
    if action is Action.GO_TOP:
        return viewport.go_top()
    if action is Action.GO_BOTTOM:
        return viewport.go_bottom()
    return False


def dispatch_message(session: Session, message: Message) -> bool:
    """Route one inbox message; return ``True`` when the loop should stop."""
    if isinstance(message, KeyPressed):
        action = action_for_key(message.key)
        if action is None:
            return False
        return handle_action(session, action)
    if isinstance(message, WatchTriggered):
        session.on_watch_triggered()
    elif isinstance(message, CollectCompleted):
        session.apply_collect(message)
    elif isinstance(message, RenderCompleted):
        session.apply_render(message)
    else:
        logger.warning("ignoring unknown message %r", message)
    return False
