"""Carry navigation state from one tree generation to the next."""

from __future__ import annotations

from .change_tree import ChangeTree, FolderNode, parent_path


def _carry_expansion(old_tree: ChangeTree, new_tree: ChangeTree) -> None:
    for path in new_tree.paths():
        new_node = new_tree.find(path)
        old_node = old_tree.find(path)
        if isinstance(new_node, FolderNode) and isinstance(old_node, FolderNode):
            new_node.expanded = old_node.expanded


def _sibling_candidates(old_tree: ChangeTree, path: str) -> list[str]:
    """Old siblings of ``path`` ordered by distance, following side first."""
    siblings = [node.path for node in old_tree.children_of(parent_path(path))]
    if path not in siblings:
        return []
    index = siblings.index(path)
    ordered: list[str] = []
    for distance in range(1, len(siblings)):
        after = index + distance
        before = index - distance
        if after < len(siblings):
            ordered.append(siblings[after])
        if before >= 0:
            ordered.append(siblings[before])
    return ordered


def _first_visible(tree: ChangeTree) -> str | None:
    for entry in tree.flatten():
        return entry.path
    return None


def reconcile(
    old_tree: ChangeTree,
    new_tree: ChangeTree,
    selected_path: str | None,
    prefer_neighbors: bool = True,
) -> str | None:
    """Copy expansion flags onto ``new_tree`` and resolve the selection.

    Resolution order: the same path, then (with ``prefer_neighbors``) the
    nearest surviving old sibling and the nearest visible surviving ancestor,
    then the first visible entry. Returns ``None`` for an empty tree.
    """
    _carry_expansion(old_tree, new_tree)

    if new_tree.is_empty():
        return None
    if selected_path is not None and selected_path in new_tree and new_tree.is_visible(selected_path):
        return selected_path

    if selected_path is not None and prefer_neighbors:
        for candidate in _sibling_candidates(old_tree, selected_path):
            if candidate in new_tree and new_tree.is_visible(candidate):
                return candidate
        ancestor = parent_path(selected_path)
        while ancestor:
            if ancestor in new_tree and new_tree.is_visible(ancestor):
                return ancestor
            ancestor = parent_path(ancestor)

    return _first_visible(new_tree)
