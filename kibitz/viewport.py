"""Rendered diff documents, hunk indexing, and scroll state.

A :class:`DiffDocument` holds printer output split into display lines plus the
line offsets where hunks start. File headers and hunk markers are also kept
apart, as :class:`HeaderBlock` spans, so the pane can pin the header of the
section being read. :class:`Viewport` owns the scroll position over one
document and keeps it clamped to ``[0, max(0, total_lines - page_size)]``.
"""

from __future__ import annotations

import bisect
import hashlib
import re
from dataclasses import dataclass, field

from .ansi import plain_text, split_styled_lines
from .change_tree import DiffMode
from .errors import HunkParseError

HUNK_HEADER_RE = re.compile(r"^\s*(?:Δ|•|@@ |added:|removed:|renamed:)")
FILE_HEADER_RE = re.compile(r"^\s*(?:Δ|added:|removed:|renamed:)")
HUNK_MARKER_RE = re.compile(r"^\s*(?:•|@@ )")
RULE_CHARS = frozenset("─━═┄┈┌┐└┘╭╮╰╯┬┴│ ")


def find_hunk_starts(lines: list[str]) -> list[int]:
    """Return offsets of lines whose plain text looks like a hunk header.

    Raises :class:`HunkParseError` when a non-empty document has no header.
    """
    starts = [index for index, line in enumerate(lines) if HUNK_HEADER_RE.match(plain_text(line))]
    if lines and not starts:
        raise HunkParseError(f"no hunk headers in {len(lines)} lines")
    return starts


def content_digest(text: str) -> str:
    digest = hashlib.blake2b(digest_size=20)
    digest.update(text.encode("utf-8", errors="surrogateescape"))
    return digest.hexdigest()


def _is_rule(plain: str) -> bool:
    stripped = plain.strip()
    return bool(stripped) and any(ch != " " and ch != "│" for ch in stripped) and all(
        ch in RULE_CHARS for ch in stripped
    )


@dataclass(frozen=True)
class HeaderBlock:
    """Lines ``top .. top + height - 1`` drawn around a header at ``line``."""

    line: int
    top: int
    height: int

    @property
    def rows(self) -> range:
        return range(self.top, self.top + self.height)


def find_header_blocks(lines: list[str]) -> tuple[list[HeaderBlock], list[HeaderBlock]]:
    """Split headers into file-header and hunk-marker blocks.

    A file header takes its underline when one follows. A hunk marker takes
    the box delta draws around it when there is a rule both above and below.
    """
    plain = [plain_text(line) for line in lines]
    files: list[HeaderBlock] = []
    hunks: list[HeaderBlock] = []
    for index, text in enumerate(plain):
        below = index + 1 < len(plain) and _is_rule(plain[index + 1])
        if FILE_HEADER_RE.match(text):
            files.append(HeaderBlock(index, index, 2 if below else 1))
        elif HUNK_MARKER_RE.match(text):
            above = index > 0 and _is_rule(plain[index - 1])
            if above and below and not (files and index - 1 in files[-1].rows):
                hunks.append(HeaderBlock(index, index - 1, 3))
            else:
                hunks.append(HeaderBlock(index, index, 1))
    return files, hunks


def jump_leads(
    hunk_starts: list[int],
    file_headers: list[HeaderBlock],
    hunk_markers: list[HeaderBlock],
) -> list[int]:
    """Lines to stop above each hunk start so pinned headers cover only copies.

    Landing ``lead`` lines early puts the enclosing file header's block exactly
    over the lines it repeats, and the hunk's box top directly below it.
    """
    markers = {block.line: block for block in hunk_markers}
    file_lines = [block.line for block in file_headers]
    leads: list[int] = []
    previous_anchor = 0
    for start in hunk_starts:
        anchor = start
        marker = markers.get(start)
        if marker is not None:
            anchor = marker.top
            index = bisect.bisect_left(file_lines, marker.top) - 1
            if index >= 0:
                owner = file_headers[index]
                anchor = max(owner.line, marker.top - owner.height)
        anchor = max(anchor, previous_anchor)
        previous_anchor = anchor
        leads.append(start - anchor)
    return leads


@dataclass(frozen=True)
class DiffDocument:
    """Immutable rendered diff for one ``(path, mode, depth, generation)`` key."""

    path: str
    mode: DiffMode
    depth: int
    generation: int
    text: str
    lines: tuple[str, ...]
    hunk_starts: tuple[int, ...]
    digest: str
    degraded: bool = False
    error: str | None = None
    file_headers: tuple[HeaderBlock, ...] = ()
    hunk_markers: tuple[HeaderBlock, ...] = ()
    hunk_leads: tuple[int, ...] = ()

    @classmethod
    def from_text(
        cls,
        text: str,
        path: str = "",
        mode: DiffMode = DiffMode.UNSTAGED,
        depth: int = 0,
        generation: int = 0,
    ) -> DiffDocument:
        lines = split_styled_lines(text)
        degraded = False
        try:
            starts = find_hunk_starts(lines)
        except HunkParseError:
            starts = []
            degraded = True
        files, hunks = find_header_blocks(lines)
        leads = jump_leads(starts, files, hunks)
        if not starts:
            starts = [0]
            leads = [0]
        return cls(
            path=path,
            mode=mode,
            depth=depth,
            generation=generation,
            text=text,
            lines=tuple(lines),
            hunk_starts=tuple(starts),
            digest=content_digest(text),
            degraded=degraded,
            file_headers=tuple(files),
            hunk_markers=tuple(hunks),
            hunk_leads=tuple(leads),
        )

    @classmethod
    def from_error(
        cls,
        message: str,
        path: str = "",
        mode: DiffMode = DiffMode.UNSTAGED,
        depth: int = 0,
        generation: int = 0,
    ) -> DiffDocument:
        return cls(
            path=path,
            mode=mode,
            depth=depth,
            generation=generation,
            text="",
            lines=(),
            hunk_starts=(0,),
            digest=content_digest(f"error:{message}"),
            error=message,
        )

    @property
    def selection_key(self) -> tuple[str, DiffMode, int]:
        return (self.path, self.mode, self.depth)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def sticky_file_header(self, offset: int) -> HeaderBlock | None:
        """File header scrolled above ``offset``, unless the next one is about to show."""
        current: HeaderBlock | None = None
        for block in self.file_headers:
            if block.line < offset:
                current = block
                continue
            if current is not None and block.line < offset + current.height:
                return None
            break
        return current

    def sticky_hunk_header(self, offset: int) -> HeaderBlock | None:
        """Hunk marker block to pin below the sticky file header, if any."""
        file_block = self.sticky_file_header(offset)
        effective = offset + (file_block.height if file_block is not None else 0)
        current: HeaderBlock | None = None
        upcoming: HeaderBlock | None = None
        for block in self.hunk_markers:
            if block.top < effective:
                current = block
            else:
                upcoming = block
                break
        if current is None:
            return None
        zone_end = effective + current.height
        if upcoming is not None and upcoming.top < zone_end:
            return None
        for block in self.file_headers:
            if block.line > current.line:
                if block.line < zone_end:
                    return None
                break
        return current

    def sticky_rows(self, offset: int) -> list[int]:
        """Line indices to draw over the top of the pane at ``offset``."""
        rows: list[int] = []
        file_block = self.sticky_file_header(offset)
        if file_block is not None:
            rows.extend(file_block.rows)
        hunk_block = self.sticky_hunk_header(offset)
        if hunk_block is not None:
            rows.extend(hunk_block.rows)
        return rows


@dataclass
class Viewport:
    """Scroll state over a document's display lines."""

    total_lines: int = 0
    page_size: int = 1
    scroll_offset: int = 0
    hunk_starts: list[int] = field(default_factory=lambda: [0])
    # Lines to land above each hunk start; empty means land on the start.
    hunk_leads: list[int] = field(default_factory=list)
    _pinned_hunk: int | None = None

    @property
    def max_offset(self) -> int:
        return max(0, self.total_lines - self.page_size)

    def _clamp(self, offset: int) -> int:
        return max(0, min(offset, self.max_offset))

    def _set_offset(self, offset: int) -> bool:
        self._pinned_hunk = None
        new_offset = self._clamp(offset)
        changed = new_offset != self.scroll_offset
        self.scroll_offset = new_offset
        return changed

    def _anchors(self) -> list[int]:
        if len(self.hunk_leads) != len(self.hunk_starts):
            return self.hunk_starts
        return [start - lead for start, lead in zip(self.hunk_starts, self.hunk_leads)]

    def load(self, document: DiffDocument, keep_position: bool = False) -> None:
        """Point the viewport at ``document``; reset to the top unless kept."""
        self.total_lines = len(document.lines)
        self.hunk_starts = list(document.hunk_starts) or [0]
        self.hunk_leads = list(document.hunk_leads)
        if keep_position:
            if self._pinned_hunk is not None and self._pinned_hunk >= len(self.hunk_starts):
                self._pinned_hunk = None
            self.scroll_offset = self._clamp(self.scroll_offset)
        else:
            self._pinned_hunk = None
            self.scroll_offset = 0

    def resize(self, page_size: int) -> None:
        self.page_size = max(1, int(page_size))
        self.scroll_offset = self._clamp(self.scroll_offset)

    def scroll_by(self, delta: int) -> bool:
        return self._set_offset(self.scroll_offset + int(delta))

    def scroll_page(self, direction: int, half: bool = False) -> bool:
        step = max(1, self.page_size // 2) if half else self.page_size
        return self.scroll_by(step if direction > 0 else -step)

    def go_top(self) -> bool:
        return self._set_offset(0)

    def go_bottom(self) -> bool:
        return self._set_offset(self.max_offset)

    @property
    def current_hunk(self) -> int:
        """Index of the last hunk start at or before the current position."""
        if self._pinned_hunk is not None:
            return self._pinned_hunk
        return max(0, bisect.bisect_right(self.hunk_starts, self.scroll_offset) - 1)

    @property
    def hunk_count(self) -> int:
        return len(self.hunk_starts)

    def jump_hunk(self, direction: int) -> bool:
        """Move to the next or previous hunk start; never wraps around.

        The offset lands the hunk's lead above its start, so the pinned file
        header sits over the lines it repeats. Returns ``False`` when already at
        the first or last hunk.
        """
        anchors = self._anchors()
        if self._pinned_hunk is not None:
            index = self._pinned_hunk + (1 if direction > 0 else -1)
        elif direction > 0:
            index = bisect.bisect_right(self.hunk_starts, self.scroll_offset)
        else:
            index = bisect.bisect_left(self.hunk_starts, self.scroll_offset) - 1
        if index < 0 or index >= len(anchors):
            return False
        self.scroll_offset = self._clamp(anchors[index])
        self._pinned_hunk = index
        return True

    def percent(self) -> int:
        if self.max_offset == 0:
            return 100
        return round(100 * self.scroll_offset / self.max_offset)

    def visible_range(self) -> tuple[int, int]:
        return self.scroll_offset, min(self.total_lines, self.scroll_offset + self.page_size)
