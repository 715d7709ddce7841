"""Main interactive event loop for the terminal UI.

Blocks on the owner inbox, routes each message into a state transition, and
redraws once per drained batch when anything changed. The loop is
wiring only; behavior lives in the session and dispatch modules.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from queue import Empty, Queue

from ..state import AppState
from .dispatch import dispatch_message
from .messages import Message
from .session import Session

# Terminal size is polled at this interval while the inbox is quiet.
IDLE_POLL_SECONDS = 0.25


@dataclass(frozen=True)
class RuntimeLoopCallbacks:
    """Injected terminal operations used by ``run_main_loop``."""

    terminal_size: Callable[[], tuple[int, int]]
    draw: Callable[[AppState, int, int], None]


def _drain(inbox: Queue[Message], first: Message) -> list[Message]:
    batch = [first]
    while True:
        try:
            batch.append(inbox.get_nowait())
        except Empty:
            return batch


def run_main_loop(
    session: Session,
    inbox: Queue[Message],
    callbacks: RuntimeLoopCallbacks,
    idle_poll_seconds: float = IDLE_POLL_SECONDS,
) -> None:
    """Run until a quit action is dispatched."""
    state = session.state
    while True:
        columns, rows = callbacks.terminal_size()
        if (columns, rows) != (state.width, state.height):
            session.resize(columns, rows)
        if state.dirty:
            callbacks.draw(state, state.width, state.height)
            state.dirty = False

        try:
            first = inbox.get(timeout=idle_poll_seconds)
        except Empty:
            continue
        for message in _drain(inbox, first):
            if dispatch_message(session, message):
                return
