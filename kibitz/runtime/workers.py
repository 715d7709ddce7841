"""Single-threaded latest-request-wins background workers.

A worker thread is started on demand and keeps draining the single pending
slot until it is empty. Scheduling while a job runs replaces whatever was
pending, so superseded requests never start; the running job always finishes
and its result is posted.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Generic, TypeVar

from ..commits import CommitInfo
from ..errors import CollectionError, RenderError
from ..git import collect
from ..printer import DiffPrinter, RenderRequest
from .messages import CollectCompleted, RenderCompleted

logger = logging.getLogger(__name__)

RequestT = TypeVar("RequestT")
ResultT = TypeVar("ResultT")


class LatestRequestWorker(Generic[RequestT, ResultT]):
    """Run ``handler`` on the newest request and hand results to ``post``."""

    def __init__(
        self,
        name: str,
        handler: Callable[[RequestT], ResultT],
        post: Callable[[ResultT], None],
    ) -> None:
        self.name = name
        self._handler = handler
        self._post = post
        self._lock = threading.Lock()
        self._pending: RequestT | None = None
        self._has_pending = False
        self._running = False
        self._thread: threading.Thread | None = None

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._running

    def _worker(self) -> None:
        while True:
            with self._lock:
                if not self._has_pending:
                    self._running = False
                    return
                request = self._pending
                self._pending = None
                self._has_pending = False

            try:
                result = self._handler(request)
            except Exception:
                logger.exception("%s worker failed", self.name)
                continue
            self._post(result)

    def schedule(self, request: RequestT) -> None:
        """Queue ``request``, replacing any request that has not started."""
        with self._lock:
            if self._has_pending:
                logger.debug("%s: superseded pending request", self.name)
            self._pending = request
            self._has_pending = True
            if self._running:
                return
            self._running = True

        worker = threading.Thread(
            target=self._worker,
            name=f"kibitz-{self.name}",
            daemon=True,
        )
        self._thread = worker
        worker.start()

    def join(self, timeout: float | None = None) -> None:
        thread = self._thread
        if thread is not None:
            thread.join(timeout)


@dataclass(frozen=True)
class CollectRequest:
    seq: int
    depth: int
    commit: CommitInfo | None
    history_limit: int
    prefer_neighbors: bool = True


def make_collect_handler(repo_root: Path) -> Callable[[CollectRequest], CollectCompleted]:
    def handle(request: CollectRequest) -> CollectCompleted:
        try:
            snapshot = collect(repo_root, request.commit, request.history_limit)
        except CollectionError as exc:
            logger.warning("collection failed: %s", exc)
            return CollectCompleted(
                seq=request.seq,
                depth=request.depth,
                prefer_neighbors=request.prefer_neighbors,
                error=str(exc),
            )
        return CollectCompleted(
            seq=request.seq,
            depth=request.depth,
            prefer_neighbors=request.prefer_neighbors,
            snapshot=snapshot,
        )

    return handle


def make_render_handler(
    repo_root: Path,
    printer: DiffPrinter,
) -> Callable[[RenderRequest], RenderCompleted]:
    def handle(request: RenderRequest) -> RenderCompleted:
        try:
            text = printer.render(repo_root, request)
        except RenderError as exc:
            logger.warning("render of %s failed: %s", request.path or ".", exc)
            return RenderCompleted(request=request, error=str(exc))
        return RenderCompleted(request=request, text=text)

    return handle


__all__ = [
    "CollectRequest",
    "LatestRequestWorker",
    "make_collect_handler",
    "make_render_handler",
]
