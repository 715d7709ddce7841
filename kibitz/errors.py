"""Error hierarchy shared by collection, rendering, and watching.

Only ``EnvironmentCheckError`` is fatal; every other error is stored on the
session state and rendered inline without interrupting the event loop.
"""

from __future__ import annotations


class KibitzError(Exception):
    """Base class for all kibitz errors."""


class EnvironmentCheckError(KibitzError):
    """Startup precondition failed (no git work tree, printer missing, no tty)."""


class CollectionError(KibitzError):
    """A git status/log/diff-tree query failed."""


class RenderError(KibitzError):
    """Producing the raw diff or running the printer failed."""


class HunkParseError(KibitzError):
    """Rendered text carries no recognizable hunk headers."""


class WatcherError(KibitzError):
    """The filesystem notification subsystem could not be started."""
