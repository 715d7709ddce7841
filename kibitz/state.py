from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .change_tree import ChangeTree, DiffMode, Selection
from .commits import CommitInfo, CommitNavigator
from .config import Config
from .printer import RenderCache
from .viewport import DiffDocument, Viewport


@dataclass
class AppState:
    repo_root: Path
    config: Config = field(default_factory=Config)
    tree: ChangeTree = field(default_factory=ChangeTree)
    # Depth and commit the current tree was collected for; may lag the navigator.
    tree_depth: int = 0
    tree_commit: CommitInfo | None = None
    selected_path: str | None = None
    mode: DiffMode = DiffMode.UNSTAGED
    navigator: CommitNavigator = field(default_factory=CommitNavigator)
    viewport: Viewport = field(default_factory=Viewport)
    document: DiffDocument | None = None
    render_cache: RenderCache = field(default_factory=RenderCache)
    generation: int = 0
    render_seq: int = 0
    collect_seq: int = 0
    render_pending: bool = False
    collect_pending: bool = False
    collection_error: str | None = None
    watcher_error: str | None = None
    watch_enabled: bool = True
    show_tree: bool = True
    show_help: bool = False
    tree_start: int = 0
    # Folder path -> child last left through "go to parent", for horizontal layout.
    last_child: dict[str, str] = field(default_factory=dict)
    width: int = 80
    height: int = 24
    diff_width: int = 80
    dirty: bool = True

    @property
    def horizontal(self) -> bool:
        return self.config.layout_mode == "horizontal"

    @property
    def selection(self) -> Selection | None:
        if self.selected_path is None:
            return None
        return Selection(self.selected_path, self.mode)

    @property
    def banner(self) -> str | None:
        if self.collection_error:
            return f"git: {self.collection_error}"
        if self.watcher_error:
            return f"watch disabled ({self.watcher_error}); press r to refresh"
        return None
