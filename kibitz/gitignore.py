"""Gitignore lookups for filesystem events.

Builds a matcher by asking git for ignored files and directories under the
repository root. The watcher consults it to drop events for build output and
other ignored content.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from .git import run_git

logger = logging.getLogger(__name__)

GITIGNORE_MATCHER_CACHE_MAX = 16
GITIGNORE_MATCHER_CACHE_TTL_SECONDS = 2.0


@dataclass(frozen=True)
class _MatcherCacheEntry:
    """Cached matcher plus root directory mtime and insertion timestamp."""

    matcher: GitIgnoreMatcher | None
    root_mtime_ns: int | None
    loaded_at: float


_GITIGNORE_MATCHER_CACHE: OrderedDict[str, _MatcherCacheEntry] = OrderedDict()


def clear_gitignore_cache() -> None:
    _GITIGNORE_MATCHER_CACHE.clear()


@dataclass(frozen=True)
class GitIgnoreMatcher:
    """Ignored paths of one repository, as POSIX paths relative to its root.

    A path is ignored when it, or any of its parent directories, is listed.
    """

    root: Path
    ignored_files: frozenset[str]
    ignored_dirs: frozenset[str]

    def is_ignored_relative(self, rel_path: str) -> bool:
        rel = rel_path.strip("/")
        if not rel:
            return False
        if rel in self.ignored_files or rel in self.ignored_dirs:
            return True
        return any(str(parent) in self.ignored_dirs for parent in PurePosixPath(rel).parents if str(parent) != ".")


def _load_matcher(repo_root: Path) -> GitIgnoreMatcher | None:
    """Query git for ignored entries; ``None`` when git cannot answer."""
    proc = run_git(
        repo_root,
        ["ls-files", "-z", "--others", "-i", "--exclude-standard", "--directory"],
    )
    if proc is None or proc.returncode != 0:
        logger.debug("could not list ignored files under %s", repo_root)
        return None

    ignored_files: set[str] = set()
    ignored_dirs: set[str] = set()
    for raw in proc.stdout.split("\0"):
        if not raw:
            continue
        rel = raw.rstrip("/")
        if not rel:
            continue
        if raw.endswith("/"):
            ignored_dirs.add(rel)
        else:
            ignored_files.add(rel)

    return GitIgnoreMatcher(
        root=repo_root.resolve(),
        ignored_files=frozenset(ignored_files),
        ignored_dirs=frozenset(ignored_dirs),
    )


def get_gitignore_matcher(repo_root: Path) -> GitIgnoreMatcher | None:
    """Return cached matcher for ``repo_root`` with bounded staleness."""
    resolved_root = repo_root.resolve()
    key = str(resolved_root)
    try:
        root_mtime_ns: int | None = int(resolved_root.stat().st_mtime_ns)
    except OSError:
        root_mtime_ns = None
    now = time.monotonic()

    cached = _GITIGNORE_MATCHER_CACHE.get(key)
    if cached is not None:
        cache_age = now - cached.loaded_at
        if (
            cached.root_mtime_ns == root_mtime_ns
            and cache_age <= GITIGNORE_MATCHER_CACHE_TTL_SECONDS
        ):
            _GITIGNORE_MATCHER_CACHE.move_to_end(key)
            return cached.matcher

    matcher = _load_matcher(resolved_root)
    _GITIGNORE_MATCHER_CACHE[key] = _MatcherCacheEntry(
        matcher=matcher,
        root_mtime_ns=root_mtime_ns,
        loaded_at=now,
    )
    _GITIGNORE_MATCHER_CACHE.move_to_end(key)
    while len(_GITIGNORE_MATCHER_CACHE) > GITIGNORE_MATCHER_CACHE_MAX:
        _GITIGNORE_MATCHER_CACHE.popitem(last=False)
    return matcher
