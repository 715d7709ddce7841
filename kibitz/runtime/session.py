"""State transitions owned by the main loop.

Every method here runs on the owner thread and mutates ``AppState``
directly. Git and printer work is handed to background workers; their
results come back through the inbox and are checked against the latest
issued sequence number before they are applied.
"""

from __future__ import annotations

import logging
from typing import Protocol

from ..change_tree import ChangeTree, DiffMode, FileNode, FileStatus, FolderNode, default_mode, parent_path
from ..git import ChangeSnapshot
from ..printer import RenderRequest, build_targets
from ..reconcile import reconcile
from ..state import AppState
from ..viewport import DiffDocument
from ..watcher import RepoWatcher
from .messages import CollectCompleted, RenderCompleted
from .workers import CollectRequest

logger = logging.getLogger(__name__)

TREE_MIN_WIDTH = 20
TREE_MAX_WIDTH = 50
TREE_PADDING = 4
# Title row above the diff plus the status row at the bottom.
CHROME_ROWS = 2


class _Scheduler(Protocol):
    def schedule(self, request) -> None: ...


def tree_pane_width(state: AppState) -> int:
    """Width of the side tree pane, following the longest visible row."""
    if not state.show_tree or state.horizontal:
        return 0
    longest = 0
    for entry in state.tree.flatten():
        longest = max(longest, entry.depth * 2 + len(entry.node.name) + 2)
    width = max(TREE_MIN_WIDTH, min(TREE_MAX_WIDTH, longest + TREE_PADDING))
    return max(0, min(width, state.width // 2))


def tree_pane_height(state: AppState) -> int:
    """Height of the bottom tree pane in horizontal layout, title row included."""
    if not state.show_tree or not state.horizontal:
        return 0
    rows = len(state.tree.horizontal_rows(state.selected_path))
    return min(max(rows, 1), state.config.layout_max_rows) + 1


class Session:
    """Owner-side operations on one ``AppState``."""

    def __init__(
        self,
        state: AppState,
        render_worker: _Scheduler,
        collect_worker: _Scheduler,
        watcher: RepoWatcher | None = None,
    ) -> None:
        self.state = state
        self.render_worker = render_worker
        self.collect_worker = collect_worker
        self.watcher = watcher

    # -- collection ---------------------------------------------------------

    def request_collect(self, prefer_neighbors: bool = True) -> int:
        """Schedule a collection for the navigator's current depth."""
        state = self.state
        state.collect_seq += 1
        state.collect_pending = True
        self.collect_worker.schedule(
            CollectRequest(
                seq=state.collect_seq,
                depth=state.navigator.depth,
                commit=state.navigator.current(),
                history_limit=state.config.history_limit,
                prefer_neighbors=prefer_neighbors,
            )
        )
        return state.collect_seq

    def apply_collect(self, message: CollectCompleted) -> bool:
        state = self.state
        if message.seq != state.collect_seq:
            logger.debug("discarding stale collection %d (latest %d)", message.seq, state.collect_seq)
            return False
        state.collect_pending = False
        state.dirty = True
        if message.error is not None or message.snapshot is None:
            state.collection_error = message.error or "collection failed"
            return True
        self.apply_snapshot(message.snapshot, message.depth, prefer_neighbors=message.prefer_neighbors)
        return True

    def apply_snapshot(self, snapshot: ChangeSnapshot, depth: int, prefer_neighbors: bool = True) -> None:
        """Install a freshly collected tree and re-point the selection."""
        state = self.state
        old_tree = state.tree
        if depth != state.tree_depth:
            # A different commit is a different tree; keep nothing but the path.
            old_tree = ChangeTree()
        new_selection = reconcile(old_tree, snapshot.tree, state.selected_path, prefer_neighbors)

        state.tree = snapshot.tree
        state.tree_depth = depth
        state.tree_commit = snapshot.commit
        if snapshot.commits is not None:
            state.navigator.update_commits(snapshot.commits)
        state.collection_error = None
        state.generation += 1
        state.render_cache.invalidate()
        state.dirty = True

        self._set_selection(new_selection, keep_mode=new_selection == state.selected_path)
        self._relayout()
        self.request_render()

    def on_watch_triggered(self) -> bool:
        if self.state.navigator.in_history or not self.state.watch_enabled:
            return False
        self.request_collect(prefer_neighbors=True)
        return True

    def refresh(self) -> None:
        self.request_collect(prefer_neighbors=not self.state.navigator.in_history)

    # -- selection ------------------------------------------------------------

    def _set_selection(self, path: str | None, keep_mode: bool = False) -> None:
        state = self.state
        node = state.tree.find(path) if path is not None else None
        if keep_mode and isinstance(node, FileNode) and node.status is FileStatus.MIXED and state.tree_depth == 0:
            mode = state.mode
        else:
            mode = default_mode(node) if state.tree_depth == 0 else DiffMode.UNSTAGED
        state.selected_path = path
        state.mode = mode

    def select(self, path: str | None) -> bool:
        state = self.state
        if path == state.selected_path:
            return False
        self._set_selection(path)
        state.dirty = True
        if state.horizontal:
            self._relayout()
        self.request_render()
        return True

    def selected_index(self) -> int:
        if self.state.selected_path is None:
            return -1
        for index, entry in enumerate(self.state.tree.flatten()):
            if entry.path == self.state.selected_path:
                return index
        return -1

    def move_cursor(self, delta: int) -> bool:
        visible = self.state.tree.visible_paths()
        if not visible:
            return False
        index = self.selected_index()
        if index < 0:
            return self.select(visible[0])
        target = max(0, min(len(visible) - 1, index + delta))
        return self.select(visible[target])

    def expand(self) -> bool:
        """Expand a collapsed folder; otherwise move down one row."""
        state = self.state
        node = state.tree.find(state.selected_path) if state.selected_path else None
        if isinstance(node, FolderNode) and not node.expanded:
            state.tree.expand(node.path)
            state.dirty = True
            return True
        return self.move_cursor(1)

    def collapse(self) -> bool:
        """Collapse an expanded folder; otherwise move to the parent folder."""
        state = self.state
        path = state.selected_path
        if path is None:
            return False
        node = state.tree.find(path)
        if isinstance(node, FolderNode) and node.expanded:
            state.tree.collapse(path)
            state.dirty = True
            return True
        parent = parent_path(path)
        if not parent:
            return False
        return self.select(parent)

    def ascend(self) -> bool:
        """Select the parent folder, remembering which child was left."""
        state = self.state
        path = state.selected_path
        if path is None:
            return self.move_cursor(0)
        parent = parent_path(path)
        if not parent:
            return False
        state.last_child[parent] = path
        return self.select(parent)

    def descend(self) -> bool:
        """Enter the selected folder at its remembered child, else its first."""
        state = self.state
        path = state.selected_path
        if path is None:
            return self.move_cursor(0)
        node = state.tree.find(path)
        if not isinstance(node, FolderNode) or not node.children:
            return False
        state.tree.expand(path)
        remembered = state.last_child.get(path)
        if remembered is not None and remembered in state.tree and parent_path(remembered) == path:
            return self.select(remembered)
        return self.select(node.children[0].path)

    def move_sibling(self, direction: int) -> bool:
        state = self.state
        if state.selected_path is None:
            return self.move_cursor(0)
        target = state.tree.neighbor(state.selected_path, direction)
        if target is None:
            return False
        return self.select(target)

    def toggle_mode(self) -> bool:
        """Switch staged/unstaged view; only Mixed working-tree files allow it."""
        state = self.state
        node = state.tree.find(state.selected_path) if state.selected_path else None
        if state.tree_depth != 0 or not isinstance(node, FileNode) or node.status is not FileStatus.MIXED:
            return False
        state.mode = state.mode.toggled()
        state.dirty = True
        self.request_render()
        return True

    # -- history --------------------------------------------------------------

    def step_commit(self, direction: int) -> bool:
        """Move the commit pointer; ``direction > 0`` goes further back."""
        navigator = self.state.navigator
        changed = navigator.back() if direction > 0 else navigator.forward()
        if not changed:
            return False
        if self.watcher is not None and self.state.watch_enabled:
            if navigator.in_history:
                self.watcher.pause()
            else:
                self.watcher.resume()
        self.state.dirty = True
        self.request_collect(prefer_neighbors=False)
        return True

    # -- rendering ------------------------------------------------------------

    def request_render(self) -> int | None:
        """Issue a render for the current selection, using the cache when possible."""
        state = self.state
        selection = state.selection
        if selection is None:
            state.document = None
            state.render_pending = False
            state.viewport.load(DiffDocument.from_text(""))
            state.dirty = True
            return None

        state.render_seq += 1
        request = RenderRequest(
            path=selection.path,
            mode=selection.mode,
            depth=state.tree_depth,
            generation=state.generation,
            seq=state.render_seq,
            width=max(1, state.diff_width),
            targets=build_targets(state.tree, selection.path, selection.mode),
            commit=state.tree_commit,
        )
        cached = state.render_cache.get(request.key)
        if cached is not None:
            self.apply_render(RenderCompleted(request=request, text=cached))
            return request.seq
        state.render_pending = True
        state.dirty = True
        self.render_worker.schedule(request)
        return request.seq

    def apply_render(self, message: RenderCompleted) -> bool:
        """Install a render result unless a newer request has been issued."""
        state = self.state
        request = message.request
        if request.seq != state.render_seq or request.generation != state.generation:
            logger.debug(
                "discarding stale render seq=%d gen=%d (latest seq=%d gen=%d)",
                request.seq,
                request.generation,
                state.render_seq,
                state.generation,
            )
            return False

        if message.error is not None:
            document = DiffDocument.from_error(
                message.error, request.path, request.mode, request.depth, request.generation
            )
        else:
            text = message.text or ""
            state.render_cache.put(request.key, text)
            document = DiffDocument.from_text(
                text, request.path, request.mode, request.depth, request.generation
            )

        previous = state.document
        keep = (
            previous is not None
            and previous.selection_key == document.selection_key
            and previous.digest == document.digest
        )
        state.viewport.load(document, keep_position=keep)
        state.document = document
        state.render_pending = False
        state.dirty = True
        return True

    # -- layout ---------------------------------------------------------------

    def _relayout(self) -> bool:
        """Recompute pane sizes; return whether the diff width changed."""
        state = self.state
        tree_width = tree_pane_width(state)
        separator = 1 if tree_width else 0
        diff_width = max(1, state.width - tree_width - separator)
        state.viewport.resize(max(1, state.height - CHROME_ROWS - tree_pane_height(state)))
        state.dirty = True
        if diff_width == state.diff_width:
            return False
        state.diff_width = diff_width
        # Printer output depends on width, so cached renders are stale.
        state.render_cache.invalidate()
        return True

    def resize(self, width: int, height: int) -> None:
        self.state.width = max(1, width)
        self.state.height = max(1, height)
        if self._relayout():
            self.request_render()

    def toggle_tree(self) -> None:
        self.state.show_tree = not self.state.show_tree
        self.resize(self.state.width, self.state.height)

    def toggle_help(self) -> None:
        self.state.show_help = not self.state.show_help
        self.state.dirty = True
