"""Messages posted into the owner inbox by input, watcher and workers."""

from __future__ import annotations

from dataclasses import dataclass

from ..git import ChangeSnapshot
from ..printer import RenderRequest


@dataclass(frozen=True)
class KeyPressed:
    key: str


@dataclass(frozen=True)
class WatchTriggered:
    pass


@dataclass(frozen=True)
class CollectCompleted:
    """Outcome of one collection request; exactly one of snapshot/error is set."""

    seq: int
    depth: int
    prefer_neighbors: bool
    snapshot: ChangeSnapshot | None = None
    error: str | None = None


@dataclass(frozen=True)
class RenderCompleted:
    """Outcome of one render request; ``error`` replaces the diff pane on failure."""

    request: RenderRequest
    text: str | None = None
    error: str | None = None


Message = KeyPressed | WatchTriggered | CollectCompleted | RenderCompleted
