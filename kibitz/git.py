"""Read-only git queries behind the change-set tree.

Resolves the work-tree root, parses ``status --porcelain=v2 -z`` and
``diff-tree --name-status -z`` output into status records, lists first-parent
ancestry, and bundles the result into a :class:`ChangeSnapshot`.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from .change_tree import ChangeTree, FileStatus, StatusRecord
from .commits import CommitInfo
from .errors import CollectionError, EnvironmentCheckError

logger = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 10.0
DEFAULT_HISTORY_LIMIT = 500

# 1 <XY> <sub> <mH> <mI> <mW> <hH> <hI> <path>
# 2 <XY> <sub> <mH> <mI> <mW> <hH> <hI> <R|C><score> <path><sep><origPath>
# u <XY> <sub> <m1> <m2> <m3> <mW> <h1> <h2> <h3> <path>
_STATUS_PATTERNS = {
    "1": re.compile(r"1 (.)(.) (....) (\d+) (\d+) (\d+) ([\da-f]+) ([\da-f]+) ([^\x00]*)\x00"),
    "2": re.compile(
        r"2 (.)(.) (....) (\d+) (\d+) (\d+) ([\da-f]+) ([\da-f]+) ([RC])(\d+) ([^\x00]*)\x00([^\x00]*)\x00"
    ),
    "u": re.compile(r"u (..) (....) (\d+) (\d+) (\d+) (\d+) ([\da-f]+) ([\da-f]+) ([\da-f]+) ([^\x00]*)\x00"),
    "?": re.compile(r"\? ([^\x00]*)\x00"),
    "!": re.compile(r"! ([^\x00]*)\x00"),
}

_STATUS_CODES = {
    "A": FileStatus.ADDED,
    "M": FileStatus.MODIFIED,
    "T": FileStatus.MODIFIED,
    "D": FileStatus.DELETED,
    "R": FileStatus.RENAMED,
    "C": FileStatus.ADDED,
}


@dataclass
class ChangeSnapshot:
    """Result of one collection pass.

    ``commits`` is only populated for working-tree collections, where the
    ancestry list is refreshed alongside the status.
    """

    tree: ChangeTree
    commit: CommitInfo | None = None
    commits: list[CommitInfo] | None = field(default=None)


def run_git(
    repo_root: Path,
    args: list[str],
    timeout_seconds: float = GIT_TIMEOUT_SECONDS,
) -> subprocess.CompletedProcess[str] | None:
    """Run git in ``repo_root``; return ``None`` when the process cannot run.

    Optional locks are disabled so status queries never rewrite the index,
    which would wake the watcher again.
    """
    try:
        return subprocess.run(
            ["git", "--no-optional-locks", "-C", str(repo_root), *args],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
            timeout=timeout_seconds,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.warning("git %s failed to run: %s", " ".join(args[:2]), exc)
        return None


def _checked_git(repo_root: Path, args: list[str]) -> str:
    proc = run_git(repo_root, args)
    if proc is None:
        raise CollectionError(f"git {args[0]} could not be run")
    if proc.returncode != 0:
        detail = proc.stderr.strip().splitlines()
        message = detail[-1] if detail else f"exit status {proc.returncode}"
        raise CollectionError(f"git {args[0]} failed: {message}")
    return proc.stdout


def resolve_repo_root(path: Path) -> Path:
    """Return the work-tree root containing ``path``.

    Raises :class:`EnvironmentCheckError` when git is missing or ``path`` is
    not inside a work tree.
    """
    if shutil.which("git") is None:
        raise EnvironmentCheckError("git executable not found on PATH")
    target = path.resolve()
    if not target.exists():
        raise EnvironmentCheckError(f"{path}: no such file or directory")
    if target.is_file():
        target = target.parent
    proc = run_git(target, ["rev-parse", "--show-toplevel"])
    top_level = proc.stdout.strip() if proc is not None and proc.returncode == 0 else ""
    if not top_level:
        raise EnvironmentCheckError(f"{path} is not inside a git work tree")
    return Path(top_level).resolve()


def _side_status(code: str, path: str) -> FileStatus:
    status = _STATUS_CODES.get(code)
    if status is None:
        logger.warning("unknown git status code %r for %s; treating as modified", code, path)
        return FileStatus.MODIFIED
    return status


def _combine(x: str, y: str, path: str) -> FileStatus:
    # Staged side wins for the kind; Mixed is applied by the tree builder.
    if x != ".":
        return _side_status(x, path)
    return _side_status(y, path)


def parse_porcelain_v2(stdout: str) -> list[StatusRecord]:
    """Parse ``git status --porcelain=v2 -z`` output into status records.

    Ignored entries are dropped. Unmerged entries are reported as unstaged
    modifications.
    """
    records: list[StatusRecord] = []
    pos = 0
    limit = len(stdout)
    while pos < limit:
        ident = stdout[pos]
        pattern = _STATUS_PATTERNS.get(ident)
        match = pattern.match(stdout, pos) if pattern is not None else None
        if match is None:
            logger.warning("unparseable git status entry at offset %d", pos)
            end = stdout.find("\0", pos)
            if end < 0:
                break
            pos = end + 1
            continue
        pos = match.end()

        if ident == "1":
            x, y = match.group(1), match.group(2)
            path = match.group(9)
            records.append(
                StatusRecord(
                    path=path,
                    status=_combine(x, y, path),
                    has_staged=x != ".",
                    has_unstaged=y != ".",
                )
            )
        elif ident == "2":
            x, y = match.group(1), match.group(2)
            path, orig = match.group(11), match.group(12)
            status = _combine(x, y, path)
            records.append(
                StatusRecord(
                    path=path,
                    status=status,
                    has_staged=x != ".",
                    has_unstaged=y != ".",
                    renamed_from=orig if status is FileStatus.RENAMED else None,
                )
            )
        elif ident == "u":
            path = match.group(10)
            logger.warning("unmerged path %s (%s); treating as modified", path, match.group(1))
            records.append(StatusRecord(path=path, status=FileStatus.MODIFIED, has_unstaged=True))
        elif ident == "?":
            path = match.group(1).rstrip("/")
            records.append(StatusRecord(path=path, status=FileStatus.UNTRACKED, has_unstaged=True))
        # "!" entries are ignored files.
    return records


def parse_name_status(stdout: str) -> list[StatusRecord]:
    """Parse ``git diff-tree --name-status -z`` output for one commit.

    Historical entries carry neither staged nor unstaged flags.
    """
    tokens = stdout.split("\0")
    records: list[StatusRecord] = []
    index = 0
    while index < len(tokens):
        code = tokens[index]
        index += 1
        if not code:
            continue
        kind = code[0]
        if kind in "RC":
            if index + 1 >= len(tokens):
                break
            old_path, new_path = tokens[index], tokens[index + 1]
            index += 2
            status = _side_status(kind, new_path)
            records.append(
                StatusRecord(
                    path=new_path,
                    status=status,
                    renamed_from=old_path if kind == "R" else None,
                )
            )
            continue
        if index >= len(tokens):
            break
        path = tokens[index]
        index += 1
        records.append(StatusRecord(path=path, status=_side_status(kind, path)))
    return records


def parse_log(stdout: str) -> list[CommitInfo]:
    """Parse ``git log -z --format=%H%x1f%h%x1f%P%x1f%s`` output."""
    commits: list[CommitInfo] = []
    for entry in stdout.split("\0"):
        entry = entry.strip("\n")
        if not entry:
            continue
        fields = entry.split("\x1f")
        if len(fields) < 4:
            logger.warning("skipping malformed log entry %r", entry[:40])
            continue
        oid, short_oid, parents, summary = fields[0], fields[1], fields[2], "\x1f".join(fields[3:])
        commits.append(
            CommitInfo(
                oid=oid,
                short_oid=short_oid,
                parents=tuple(parents.split()),
                summary=summary,
            )
        )
    return commits


def has_head(repo_root: Path) -> bool:
    proc = run_git(repo_root, ["rev-parse", "--verify", "--quiet", "HEAD"])
    return proc is not None and proc.returncode == 0


def list_commits(repo_root: Path, limit: int = DEFAULT_HISTORY_LIMIT) -> list[CommitInfo]:
    """Return first-parent ancestry of ``HEAD``, newest first.

    An unborn ``HEAD`` yields an empty list.
    """
    if not has_head(repo_root):
        return []
    stdout = _checked_git(
        repo_root,
        [
            "log",
            "--first-parent",
            "-z",
            f"--max-count={max(1, int(limit))}",
            "--format=%H%x1f%h%x1f%P%x1f%s",
            "HEAD",
        ],
    )
    return parse_log(stdout)


def working_tree_records(repo_root: Path) -> list[StatusRecord]:
    stdout = _checked_git(repo_root, ["status", "--porcelain=v2", "-z", "--untracked-files=all"])
    return parse_porcelain_v2(stdout)


def commit_diff_range(commit: CommitInfo) -> list[str]:
    """Tree arguments diffing ``commit`` against its first parent.

    Merges are compared with the first parent only; a root commit is compared
    with the empty tree.
    """
    if commit.is_root:
        return ["--root", commit.oid]
    return [commit.parents[0], commit.oid]


def commit_records(repo_root: Path, commit: CommitInfo) -> list[StatusRecord]:
    stdout = _checked_git(
        repo_root,
        ["diff-tree", "-r", "-z", "-M", "--no-commit-id", "--name-status", *commit_diff_range(commit)],
    )
    return parse_name_status(stdout)


def collect(
    repo_root: Path,
    commit: CommitInfo | None = None,
    history_limit: int = DEFAULT_HISTORY_LIMIT,
) -> ChangeSnapshot:
    """Build a fresh snapshot for the working tree or for one commit.

    Raises :class:`CollectionError` when any git query fails.
    """
    if commit is None:
        records = working_tree_records(repo_root)
        commits = list_commits(repo_root, history_limit)
        logger.debug("collected %d working-tree entries", len(records))
        return ChangeSnapshot(tree=ChangeTree.from_records(records), commit=None, commits=commits)

    records = commit_records(repo_root, commit)
    logger.debug("collected %d entries for %s", len(records), commit.short_oid)
    return ChangeSnapshot(tree=ChangeTree.from_records(records), commit=commit)
