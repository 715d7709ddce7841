"""Tests for frame composition.

Frames are checked on their plain text, so styling changes do not break
layout assertions.
"""

from __future__ import annotations

import re
import unittest
from dataclasses import replace
from pathlib import Path

from kibitz.ansi import display_width, plain_text
from kibitz.change_tree import ChangeTree, DiffMode, FileStatus, StatusRecord
from kibitz.commits import CommitInfo, CommitNavigator
from kibitz.screen import (
    CLEAN_TEXT,
    EMPTY_TREE_TEXT,
    LOADING_TEXT,
    SCROLLBAR_THUMB,
    build_status_line,
    build_title,
    format_horizontal_row,
    format_tree_row,
    render_frame,
    scrollbar_row,
)
from kibitz.state import AppState
from kibitz.theme import DEFAULT_COLORS, PLAIN_COLORS
from kibitz.viewport import DiffDocument

BOXED = "\n".join(
    [
        "Δ a.py",
        "──────",
        "",
        "───────┐",
        "• 1: def a(): │",
        "───────┘",
        "  x1",
        "  x2",
        "  x3",
        "───────┐",
        "• 9: def b(): │",
        "───────┘",
        "  y1",
        "  y2",
        "Δ b.py",
        "──────",
        "  z1",
    ]
)


def _screen_rows(frame: str) -> dict[int, str]:
    """Plain text of each row keyed by its 1-based screen row."""
    pieces = re.split(r"\x1b\[(\d+);1H", frame)
    return {int(row): plain_text(text) for row, text in zip(pieces[1::2], pieces[2::2])}


def _state(records: list[StatusRecord], selected: str | None = None) -> AppState:
    state = AppState(repo_root=Path("/repo"), tree=ChangeTree.from_records(records))
    state.selected_path = selected
    return state


class TreeRowTests(unittest.TestCase):
    def test_folder_and_file_rows(self) -> None:
        tree = ChangeTree.from_records(
            [
                StatusRecord("src/app.py", FileStatus.ADDED, has_staged=True),
                StatusRecord("both.txt", FileStatus.MODIFIED, has_staged=True, has_unstaged=True),
            ]
        )
        rows = [plain_text(format_tree_row(entry, DEFAULT_COLORS)) for entry in tree.flatten()]

        self.assertEqual(rows, ["± both.txt", "▼ src/", "  A app.py"])

        tree.collapse("src")
        rows = [plain_text(format_tree_row(entry, PLAIN_COLORS)) for entry in tree.flatten()]
        self.assertEqual(rows, ["± both.txt", "▶ src/"])


class TitleTests(unittest.TestCase):
    def test_mixed_file_title_names_mode(self) -> None:
        state = _state(
            [StatusRecord("both.txt", FileStatus.MODIFIED, has_staged=True, has_unstaged=True)],
            selected="both.txt",
        )
        state.mode = DiffMode.STAGED

        self.assertEqual(plain_text(build_title(state, DEFAULT_COLORS)).strip(), "Diff (staged) [s to toggle]")

    def test_rename_and_commit_titles(self) -> None:
        state = _state(
            [StatusRecord("new.py", FileStatus.RENAMED, has_staged=True, renamed_from="old.py")],
            selected="new.py",
        )
        self.assertEqual(plain_text(build_title(state, DEFAULT_COLORS)).strip(), "old.py → new.py")

        state.tree_commit = CommitInfo(oid="f" * 40, short_oid="fffffff", summary="Fix parser")
        self.assertEqual(plain_text(build_title(state, DEFAULT_COLORS)).strip(), "fffffff: Fix parser")


class StatusLineTests(unittest.TestCase):
    def test_right_text_is_kept_when_narrow(self) -> None:
        self.assertEqual(build_status_line("left side", 8, "Hunk 1/2"), "unk 1/2")

    def test_padding_between_sides(self) -> None:
        line = build_status_line("hints", 20, "100%")

        self.assertEqual(len(line), 19)
        self.assertTrue(line.startswith("hints"))
        self.assertTrue(line.endswith("100%"))


class RenderFrameTests(unittest.TestCase):
    def test_clean_tree(self) -> None:
        frame = plain_text(render_frame(_state([]), 80, 10, DEFAULT_COLORS))

        self.assertIn(EMPTY_TREE_TEXT, frame)
        self.assertIn(CLEAN_TEXT, frame)

    def test_loading_and_error_states(self) -> None:
        state = _state([StatusRecord("a.txt", FileStatus.MODIFIED, has_unstaged=True)], selected="a.txt")
        state.render_pending = True
        self.assertIn(LOADING_TEXT, plain_text(render_frame(state, 80, 10, DEFAULT_COLORS)))

        state.render_pending = False
        state.document = DiffDocument.from_error("delta failed: unknown option", path="a.txt")
        self.assertIn("delta failed: unknown option", plain_text(render_frame(state, 80, 10, DEFAULT_COLORS)))

    def test_diff_lines_are_clipped_to_pane(self) -> None:
        state = _state([StatusRecord("a.txt", FileStatus.MODIFIED, has_unstaged=True)], selected="a.txt")
        document = DiffDocument.from_text("@@ -1 +1 @@\n" + "x" * 200 + "\n", path="a.txt")
        state.document = document
        state.viewport.resize(8)
        state.viewport.load(document)

        frame = render_frame(state, 60, 10, DEFAULT_COLORS)
        rows = frame.split("\033[")

        self.assertIn("x" * 39, plain_text(frame))
        self.assertNotIn("x" * 40, plain_text(frame))
        self.assertTrue(all(display_width(plain_text(row)) <= 60 for row in rows))

    def test_banner_and_history_marker(self) -> None:
        state = _state([StatusRecord("a.txt", FileStatus.MODIFIED, has_unstaged=True)], selected="a.txt")
        state.collection_error = "index.lock exists"
        state.navigator = CommitNavigator([CommitInfo("a" * 40, "aaaaaaa"), CommitInfo("b" * 40, "bbbbbbb")])
        state.navigator.back()
        state.navigator.back()

        frame = plain_text(render_frame(state, 100, 10, DEFAULT_COLORS))

        self.assertIn("git: index.lock exists", frame)
        self.assertIn("HEAD~1", frame)

    def test_help_overlay_lists_bindings(self) -> None:
        state = _state([])
        state.width, state.height = 100, 40
        state.show_help = True

        frame = plain_text(render_frame(state, 100, 40, DEFAULT_COLORS))

        self.assertIn("Keybindings", frame)
        self.assertIn("Older / newer commit", frame)

    def test_hidden_tree_uses_full_width(self) -> None:
        state = _state([StatusRecord("a.txt", FileStatus.MODIFIED, has_unstaged=True)], selected="a.txt")
        state.show_tree = False

        frame = plain_text(render_frame(state, 80, 10, DEFAULT_COLORS))

        self.assertNotIn("│", frame)


class StickyHeaderFrameTests(unittest.TestCase):
    def test_file_header_and_hunk_box_are_pinned(self) -> None:
        state = _state([StatusRecord("a.py", FileStatus.MODIFIED, has_unstaged=True)], selected="a.py")
        state.show_tree = False
        document = DiffDocument.from_text(BOXED, path="a.py")
        state.document = document
        state.viewport.resize(6)
        state.viewport.load(document)
        state.viewport.scroll_by(8)

        frame = render_frame(state, 40, 8, DEFAULT_COLORS)
        rows = _screen_rows(frame)

        self.assertEqual(
            [rows[row] for row in range(2, 7)],
            ["Δ a.py", "──────", "───────┐", "• 9: def b(): │", "───────┘"],
        )
        self.assertTrue(rows[7].startswith("  y2"))
        self.assertIn("\033[4;40H", frame)

    def test_short_document_has_no_thumb(self) -> None:
        state = _state([StatusRecord("a.py", FileStatus.MODIFIED, has_unstaged=True)], selected="a.py")
        document = DiffDocument.from_text("@@ -1 +1 @@\n+x", path="a.py")
        state.document = document
        state.viewport.resize(8)
        state.viewport.load(document)

        self.assertNotIn(SCROLLBAR_THUMB, render_frame(state, 60, 10, DEFAULT_COLORS))


class ScrollbarTests(unittest.TestCase):
    def test_thumb_row_tracks_offset(self) -> None:
        self.assertEqual(scrollbar_row(100, 0, 10), 0)
        self.assertEqual(scrollbar_row(100, 45, 10), 4)
        self.assertEqual(scrollbar_row(100, 90, 10), 9)

    def test_no_thumb_when_content_fits(self) -> None:
        self.assertIsNone(scrollbar_row(10, 0, 20))
        self.assertIsNone(scrollbar_row(100, 0, 0))


class HorizontalLayoutTests(unittest.TestCase):
    def test_tree_rows_are_drawn_below_the_diff(self) -> None:
        state = _state(
            [
                StatusRecord("src/a/x.py", FileStatus.MODIFIED, has_unstaged=True),
                StatusRecord("src/a/y.py", FileStatus.ADDED, has_staged=True),
                StatusRecord("top.txt", FileStatus.MODIFIED, has_unstaged=True),
            ],
            selected="src/a/x.py",
        )
        state.config = replace(state.config, layout_mode="horizontal")

        rows = _screen_rows(render_frame(state, 60, 12, PLAIN_COLORS))

        self.assertTrue(rows[8].startswith("─ Files ─"))
        self.assertEqual(rows[9], "M top.txt  src/")
        self.assertEqual(rows[10], "a/")
        self.assertEqual(rows[11], "M x.py  A y.py")
        self.assertNotIn("│", "".join(rows.values()))

    def test_leading_items_are_dropped_to_show_active(self) -> None:
        tree = ChangeTree.from_records(
            [
                StatusRecord(name, FileStatus.MODIFIED, has_unstaged=True)
                for name in ("aaaaaaaaaa.txt", "bbbbbbbbbb.txt", "cccccccccc.txt")
            ]
        )
        (row,) = tree.horizontal_rows("cccccccccc.txt")

        self.assertEqual(plain_text(format_horizontal_row(row, 20, PLAIN_COLORS)), "M cccccccccc.txt")
        self.assertEqual(
            plain_text(format_horizontal_row(row, 40, PLAIN_COLORS)), "M bbbbbbbbbb.txt  M cccccccccc.txt"
        )


if __name__ == "__main__":
    unittest.main()
