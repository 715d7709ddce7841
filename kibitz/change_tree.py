"""Change-set tree model: changed paths arranged into a folder hierarchy.

Trees are built wholesale from status records and never patched across
refreshes; the reconciler copies expansion flags from the previous generation.
Visible rows come from a lazy depth-first walk over expanded folders.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import PurePosixPath


class FileStatus(enum.Enum):
    """Change kind shown for a file row."""

    MODIFIED = "M"
    ADDED = "A"
    DELETED = "D"
    RENAMED = "R"
    UNTRACKED = "?"
    MIXED = "±"

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass(frozen=True)
class StatusRecord:
    """One changed path as reported by the collector."""

    path: str
    status: FileStatus
    has_staged: bool = False
    has_unstaged: bool = False
    renamed_from: str | None = None


@dataclass
class FileNode:
    path: str
    status: FileStatus
    has_staged: bool = False
    has_unstaged: bool = False
    renamed_from: str | None = None

    is_dir = False

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name


@dataclass
class FolderNode:
    path: str
    expanded: bool = True
    children: list[FileNode | FolderNode] = field(default_factory=list)

    is_dir = True

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name if self.path else "."


Node = FileNode | FolderNode


@dataclass(frozen=True)
class VisibleNode:
    """A flattened view of a tree node for display."""

    node: Node
    depth: int

    @property
    def path(self) -> str:
        return self.node.path


class DiffMode(enum.Enum):
    UNSTAGED = "unstaged"
    STAGED = "staged"

    def toggled(self) -> DiffMode:
        return DiffMode.UNSTAGED if self is DiffMode.STAGED else DiffMode.STAGED


def default_mode(node: Node | None) -> DiffMode:
    """Staged when a file has only staged changes, otherwise unstaged."""
    if isinstance(node, FileNode) and node.has_staged and not node.has_unstaged:
        return DiffMode.STAGED
    return DiffMode.UNSTAGED


@dataclass(frozen=True)
class Selection:
    """The targeted tree path plus the staged/unstaged view flag."""

    path: str
    mode: DiffMode = DiffMode.UNSTAGED


def parent_path(path: str) -> str:
    """Return the parent folder path; top-level entries belong to root ``""``."""
    parent = str(PurePosixPath(path).parent)
    return "" if parent == "." else parent


def _sort_key(node: Node) -> tuple[int, str, str]:
    """Files first, then folders, each by case-folded name."""
    return (1 if node.is_dir else 0, node.name.casefold(), node.name)


def resolve_status(
    status: FileStatus,
    has_staged: bool,
    has_unstaged: bool,
) -> FileStatus:
    """Apply the Mixed rule: both sides changed always means ``MIXED``."""
    if has_staged and has_unstaged:
        return FileStatus.MIXED
    if status is FileStatus.MIXED:
        # Mixed without both sides is not representable; fall back to Modified.
        return FileStatus.MODIFIED
    return status


class _Flattened:
    """Restartable iterable over visible nodes; each ``iter()`` walks afresh."""

    def __init__(self, root: FolderNode) -> None:
        self._root = root

    def __iter__(self) -> Iterator[VisibleNode]:
        stack: list[tuple[Node, int]] = [(child, 0) for child in reversed(self._root.children)]
        while stack:
            node, depth = stack.pop()
            yield VisibleNode(node, depth)
            if isinstance(node, FolderNode) and node.expanded:
                stack.extend((child, depth + 1) for child in reversed(node.children))


class ChangeTree:
    """Hierarchy of changed files under an invisible root folder."""

    def __init__(self, root: FolderNode | None = None) -> None:
        self.root = root if root is not None else FolderNode("")
        self._index: dict[str, Node] = {}
        self._reindex()

    @classmethod
    def from_records(cls, records: Iterable[StatusRecord]) -> ChangeTree:
        """Build a sorted tree from status records.

        Intermediate folders are created on demand. A later record for the same
        path replaces an earlier one so callers can merge sources in order.
        """
        root = FolderNode("")
        folders: dict[str, FolderNode] = {"": root}
        files: dict[str, FileNode] = {}

        def folder_for(path: str) -> FolderNode:
            existing = folders.get(path)
            if existing is not None:
                return existing
            folder = FolderNode(path)
            folders[path] = folder
            folder_for(parent_path(path)).children.append(folder)
            return folder

        for record in records:
            path = str(PurePosixPath(record.path))
            if not path or path == ".":
                continue
            node = FileNode(
                path=path,
                status=resolve_status(record.status, record.has_staged, record.has_unstaged),
                has_staged=record.has_staged,
                has_unstaged=record.has_unstaged,
                renamed_from=record.renamed_from,
            )
            previous = files.get(path)
            parent = folder_for(parent_path(path))
            if previous is not None:
                parent.children[parent.children.index(previous)] = node
            else:
                parent.children.append(node)
            files[path] = node

        def sort_folder(folder: FolderNode) -> None:
            folder.children.sort(key=_sort_key)
            for child in folder.children:
                if isinstance(child, FolderNode):
                    sort_folder(child)

        sort_folder(root)
        return cls(root)

    def _reindex(self) -> None:
        self._index.clear()
        stack: list[Node] = list(self.root.children)
        while stack:
            node = stack.pop()
            self._index[node.path] = node
            if isinstance(node, FolderNode):
                stack.extend(node.children)

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, path: object) -> bool:
        return path in self._index

    def is_empty(self) -> bool:
        return not self.root.children

    def find(self, path: str) -> Node | None:
        return self._index.get(path)

    def paths(self) -> set[str]:
        return set(self._index)

    def children_of(self, path: str) -> list[Node]:
        """Return ordered children of folder ``path`` (``""`` is the root)."""
        folder = self.root if path == "" else self._index.get(path)
        if isinstance(folder, FolderNode):
            return list(folder.children)
        return []

    def files_under(self, path: str) -> list[str]:
        """Return every file path at or below ``path`` in tree order."""
        node = self.root if path == "" else self._index.get(path)
        if node is None:
            return []
        if isinstance(node, FileNode):
            return [node.path]
        out: list[str] = []
        stack: list[Node] = list(reversed(node.children))
        while stack:
            current = stack.pop()
            if isinstance(current, FileNode):
                out.append(current.path)
            else:
                stack.extend(reversed(current.children))
        return out

    def set_expanded(self, path: str, expanded: bool) -> bool:
        """Set a folder's expansion flag; return whether it changed."""
        node = self._index.get(path)
        if not isinstance(node, FolderNode) or node.expanded == expanded:
            return False
        node.expanded = expanded
        return True

    def expand(self, path: str) -> bool:
        return self.set_expanded(path, True)

    def collapse(self, path: str) -> bool:
        return self.set_expanded(path, False)

    def flatten(self) -> _Flattened:
        """Visible nodes in depth-first pre-order over expanded folders.

        The result is lazy and restartable, and always reflects the tree as it
        is when iteration starts.
        """
        return _Flattened(self.root)

    def visible_paths(self) -> list[str]:
        return [entry.path for entry in self.flatten()]

    def is_visible(self, path: str) -> bool:
        """Return whether every ancestor folder of ``path`` is expanded."""
        if path not in self._index:
            return False
        current = parent_path(path)
        while current:
            node = self._index.get(current)
            if not isinstance(node, FolderNode) or not node.expanded:
                return False
            current = parent_path(current)
        return True

    def neighbor(self, path: str, direction: int) -> str | None:
        """Next or previous visible entry at the same depth, crossing into cousins.

        Without a sibling in ``direction``, steps to the nearest expanded
        sibling folder of the parent and takes its first (or last) child at
        the same depth.
        """
        entries = list(self.flatten())
        index = next((i for i, entry in enumerate(entries) if entry.path == path), -1)
        if index < 0:
            return None
        depth = entries[index].depth
        step = 1 if direction > 0 else -1

        sibling = _scan_same_level(entries, index, depth, step)
        if sibling is not None:
            return entries[sibling].path

        parent = parent_path(path)
        parent_index = next((i for i, entry in enumerate(entries) if entry.path == parent), -1)
        if not parent or parent_index < 0:
            return None
        parent_depth = entries[parent_index].depth
        cursor = parent_index + step
        while 0 <= cursor < len(entries):
            entry = entries[cursor]
            if entry.depth < parent_depth:
                break
            node = entry.node
            if entry.depth == parent_depth and isinstance(node, FolderNode) and node.expanded:
                child = _descendant_at_depth(entries, cursor, depth, last=step < 0)
                if child is not None:
                    return entries[child].path
            cursor += step
        return None

    def horizontal_rows(self, selected_path: str | None) -> list[HorizontalRow]:
        """Sibling rows along the path from the root to ``selected_path``.

        Each row lists one folder's children; the next row opens the child on
        the path, so a selected folder shows its contents below it.
        """
        if selected_path is None or selected_path not in self._index:
            return []
        on_path = {selected_path}
        current = parent_path(selected_path)
        while current:
            on_path.add(current)
            current = parent_path(current)

        rows: list[HorizontalRow] = []
        children = self.root.children
        while children:
            items: list[HorizontalItem] = []
            next_children: list[Node] = []
            for child in children:
                items.append(
                    HorizontalItem(child, on_path=child.path in on_path, selected=child.path == selected_path)
                )
                if child.path in on_path and isinstance(child, FolderNode):
                    next_children = child.children
            rows.append(HorizontalRow(tuple(items)))
            children = next_children
        return rows


@dataclass(frozen=True)
class HorizontalItem:
    node: Node
    on_path: bool = False
    selected: bool = False


@dataclass(frozen=True)
class HorizontalRow:
    items: tuple[HorizontalItem, ...]

    @property
    def active_index(self) -> int:
        """Index of the item on the selected path, or 0."""
        return next((i for i, item in enumerate(self.items) if item.on_path), 0)


def _scan_same_level(entries: list[VisibleNode], index: int, depth: int, step: int) -> int | None:
    cursor = index + step
    while 0 <= cursor < len(entries):
        candidate = entries[cursor].depth
        if candidate < depth:
            return None
        if candidate == depth:
            return cursor
        cursor += step
    return None


def _descendant_at_depth(entries: list[VisibleNode], index: int, depth: int, last: bool) -> int | None:
    found: int | None = None
    folder_depth = entries[index].depth
    for cursor in range(index + 1, len(entries)):
        candidate = entries[cursor].depth
        if candidate <= folder_depth:
            break
        if candidate == depth:
            if not last:
                return cursor
            found = cursor
    return found
