"""Filesystem watching with trailing-edge debounce.

A recursive ``watchdog`` observer on the repository root feeds a restarting
timer; when a burst of relevant events goes quiet for the debounce window, one
callback fires. Events under ignored paths, and git-internal events other than
the index, ``HEAD`` and refs, are dropped.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .errors import WatcherError
from .gitignore import get_gitignore_matcher

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 200
_GIT_DIR = ".git"
_GIT_RELEVANT = ("index", "HEAD")


def _as_text(path: str | bytes) -> str:
    return os.fsdecode(path) if isinstance(path, bytes) else path


def is_relevant_path(repo_root: Path, path: str | bytes) -> bool:
    """Return whether a change at ``path`` can affect the collected state."""
    try:
        rel = Path(_as_text(path)).relative_to(repo_root)
    except ValueError:
        try:
            rel = Path(_as_text(path)).resolve().relative_to(repo_root)
        except (OSError, ValueError):
            return False
    parts = rel.parts
    if not parts:
        return False
    if parts[0] == _GIT_DIR:
        if len(parts) == 2 and parts[1] in _GIT_RELEVANT:
            return True
        return len(parts) >= 2 and parts[1] == "refs"
    matcher = get_gitignore_matcher(repo_root)
    if matcher is not None and matcher.is_ignored_relative(rel.as_posix()):
        return False
    return True


class _RepoEventHandler(FileSystemEventHandler):
    def __init__(self, watcher: RepoWatcher) -> None:
        super().__init__()
        self._watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        # Directory mtime changes duplicate the file events that caused them.
        if event.is_directory and event.event_type == "modified":
            return
        if event.event_type in ("opened", "closed_no_write"):
            return
        paths = [event.src_path]
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.append(dest)
        if any(is_relevant_path(self._watcher.repo_root, path) for path in paths):
            self._watcher.notify()


class RepoWatcher:
    """Debounced change notifications for one repository work tree.

    ``on_change`` runs on a timer thread and must only hand the event off
    (the session posts a message into its inbox).
    """

    def __init__(
        self,
        repo_root: Path,
        on_change: Callable[[], None],
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
    ) -> None:
        self.repo_root = repo_root.resolve()
        self.on_change = on_change
        self.debounce_seconds = max(0, int(debounce_ms)) / 1000.0
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._token = 0
        self._paused = False
        self._observer: Observer | None = None

    @property
    def running(self) -> bool:
        return self._observer is not None

    @property
    def paused(self) -> bool:
        with self._lock:
            return self._paused

    def start(self) -> None:
        """Start observing; raises :class:`WatcherError` on failure."""
        if self._observer is not None:
            return
        observer = Observer()
        try:
            observer.schedule(_RepoEventHandler(self), str(self.repo_root), recursive=True)
            observer.start()
        except Exception as exc:
            raise WatcherError(f"could not watch {self.repo_root}: {exc}") from exc
        self._observer = observer
        logger.debug("watching %s (debounce %.0f ms)", self.repo_root, self.debounce_seconds * 1000)

    def stop(self) -> None:
        with self._lock:
            self._cancel_timer_locked()
        observer = self._observer
        self._observer = None
        if observer is None:
            return
        try:
            observer.stop()
            observer.join(timeout=1.0)
        except RuntimeError as exc:
            logger.warning("watcher shutdown failed: %s", exc)

    def pause(self) -> None:
        with self._lock:
            self._paused = True
            self._cancel_timer_locked()

    def resume(self) -> None:
        with self._lock:
            self._paused = False

    def notify(self) -> None:
        """Record a relevant event and restart the debounce window."""
        with self._lock:
            if self._paused:
                return
            self._cancel_timer_locked()
            self._token += 1
            timer = threading.Timer(self.debounce_seconds, self._fire, args=(self._token,))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, token: int) -> None:
        with self._lock:
            # A timer that lost the race with a newer notify() must stay silent.
            if self._paused or self._timer is None or token != self._token:
                return
            self._timer = None
        self.on_change()
