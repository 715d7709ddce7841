"""Terminal input thread feeding the owner inbox."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from ..keys import read_key
from .messages import KeyPressed

logger = logging.getLogger(__name__)

POLL_TIMEOUT_MS = 100


class InputReader:
    """Decode keys from ``fd`` on a daemon thread and post ``KeyPressed``."""

    def __init__(self, fd: int, post: Callable[[KeyPressed], None]) -> None:
        self.fd = fd
        self._post = post
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="kibitz-input", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 0.5) -> None:
        self._stop.set()
        thread = self._thread
        self._thread = None
        if thread is not None:
            thread.join(timeout)

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                key = read_key(self.fd, timeout_ms=POLL_TIMEOUT_MS)
            except OSError as exc:
                logger.warning("input reader stopped: %s", exc)
                return
            if key:
                self._post(KeyPressed(key))
