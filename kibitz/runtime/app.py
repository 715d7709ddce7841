"""Process bootstrap for an interactive session.

Requires a terminal on both ends, runs the first collection synchronously,
then wires watcher, workers, input thread and terminal around
``run_main_loop`` and tears them all down on exit.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from queue import Queue

from ..config import Config
from ..errors import CollectionError, EnvironmentCheckError, WatcherError
from ..git import collect
from ..printer import DEFAULT_PRINTER, DiffPrinter, detect_theme_feature
from ..screen import render_frame
from ..state import AppState
from ..terminal import TerminalController
from ..theme import PLAIN_COLORS
from ..watcher import RepoWatcher
from .input_reader import InputReader
from .loop import RuntimeLoopCallbacks, run_main_loop
from .messages import Message, WatchTriggered
from .session import Session
from .workers import LatestRequestWorker, make_collect_handler, make_render_handler

logger = logging.getLogger(__name__)


def run_app(repo_root: Path, config: Config, stdin_fd: int | None = None, stdout_fd: int | None = None) -> None:
    """Run the interactive viewer until the user quits."""
    stdin_fd = sys.stdin.fileno() if stdin_fd is None else stdin_fd
    stdout_fd = sys.stdout.fileno() if stdout_fd is None else stdout_fd
    if not (os.isatty(stdin_fd) and os.isatty(stdout_fd)):
        raise EnvironmentCheckError("kibitz needs an interactive terminal on stdin and stdout")

    colors = PLAIN_COLORS if os.environ.get("NO_COLOR") else config.colors
    printer = DiffPrinter(
        command=(DEFAULT_PRINTER,),
        extra_args=config.printer_args,
        theme_feature=detect_theme_feature(config.theme),
    )
    inbox: Queue[Message] = Queue()
    state = AppState(repo_root=repo_root, config=config, watch_enabled=config.watch)

    render_worker = LatestRequestWorker("render", make_render_handler(repo_root, printer), inbox.put)
    collect_worker = LatestRequestWorker("collect", make_collect_handler(repo_root), inbox.put)

    watcher: RepoWatcher | None = None
    if config.watch:
        watcher = RepoWatcher(repo_root, lambda: inbox.put(WatchTriggered()), config.debounce_ms)
    session = Session(state, render_worker, collect_worker, watcher)

    terminal = TerminalController(stdin_fd, stdout_fd)
    columns, rows = terminal.size()
    state.width, state.height = columns, rows

    try:
        snapshot = collect(repo_root, None, config.history_limit)
    except CollectionError as exc:
        logger.warning("initial collection failed: %s", exc)
        state.collection_error = str(exc)
    else:
        session.apply_snapshot(snapshot, depth=0)
    session.resize(columns, rows)

    if watcher is not None:
        try:
            watcher.start()
        except WatcherError as exc:
            logger.error("%s", exc)
            state.watcher_error = str(exc)
            state.watch_enabled = False
            watcher = None
            session.watcher = None

    reader = InputReader(stdin_fd, inbox.put)

    def draw(app_state: AppState, width: int, height: int) -> None:
        terminal.write_frame(render_frame(app_state, width, height, colors))

    callbacks = RuntimeLoopCallbacks(terminal_size=terminal.size, draw=draw)
    try:
        with terminal.raw_mode():
            reader.start()
            run_main_loop(session, inbox, callbacks)
    finally:
        reader.stop()
        if watcher is not None:
            watcher.stop()
