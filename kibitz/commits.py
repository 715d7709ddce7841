"""Commit-history pointer over first-parent ancestry.

Depth 0 is the working tree; depth ``d >= 1`` is the ``d``-th most recent
first-parent commit (``1`` is ``HEAD``).
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CommitInfo:
    oid: str
    short_oid: str
    parents: tuple[str, ...] = ()
    summary: str = ""

    @property
    def is_root(self) -> bool:
        return not self.parents


class CommitNavigator:
    """Bounded depth pointer into a commit list, newest first."""

    def __init__(self, commits: list[CommitInfo] | None = None) -> None:
        self._commits: list[CommitInfo] = list(commits or [])
        self.depth = 0

    @property
    def limit(self) -> int:
        return len(self._commits)

    @property
    def in_history(self) -> bool:
        return self.depth > 0

    def back(self) -> bool:
        """Step one commit further into history; return whether depth changed."""
        new_depth = min(self.depth + 1, self.limit)
        changed = new_depth != self.depth
        self.depth = new_depth
        return changed

    def forward(self) -> bool:
        """Step one commit toward the working tree; return whether depth changed."""
        new_depth = max(self.depth - 1, 0)
        changed = new_depth != self.depth
        self.depth = new_depth
        return changed

    def update_commits(self, commits: list[CommitInfo]) -> bool:
        """Replace the ancestry list and clamp depth; return whether depth changed."""
        self._commits = list(commits)
        clamped = min(self.depth, self.limit)
        changed = clamped != self.depth
        self.depth = clamped
        return changed

    def current(self) -> CommitInfo | None:
        if self.depth <= 0 or self.depth > self.limit:
            return None
        return self._commits[self.depth - 1]
