"""Tests for ``kibitz.runtime.app`` bootstrap wiring.

Terminal, input thread and the main loop are replaced with fakes so the
startup sequence can run against a throwaway repository.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from kibitz.config import Config
from kibitz.errors import EnvironmentCheckError, WatcherError
from kibitz.runtime import app


class _FakeTerminalController:
    def __init__(self, stdin_fd: int, stdout_fd: int) -> None:
        self.stdin_fd = stdin_fd
        self.stdout_fd = stdout_fd
        self.frames: list[str] = []

    def size(self) -> tuple[int, int]:
        return (100, 30)

    def write_frame(self, frame: str) -> None:
        self.frames.append(frame)

    def raw_mode(self):
        return contextlib.nullcontext()


class RunAppTests(unittest.TestCase):
    def test_non_terminal_streams_are_rejected(self) -> None:
        read_fd, write_fd = os.pipe()
        try:
            with self.assertRaises(EnvironmentCheckError):
                app.run_app(Path("."), Config(), stdin_fd=read_fd, stdout_fd=write_fd)
        finally:
            os.close(read_fd)
            os.close(write_fd)

    @unittest.skipIf(shutil.which("git") is None, "git is required for bootstrap tests")
    def test_initial_collection_runs_before_loop(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            subprocess.run(["git", "init", "-q"], cwd=root, check=True)
            (root / "b.txt").write_text("b\n", encoding="utf-8")
            (root / "a.txt").write_text("a\n", encoding="utf-8")
            seen: dict[str, object] = {}

            def fake_run_main_loop(session, inbox, callbacks) -> None:
                seen["selected"] = session.state.selected_path
                seen["paths"] = session.state.tree.visible_paths()
                seen["diff_width"] = session.state.diff_width
                seen["watch_enabled"] = session.state.watch_enabled

            with mock.patch("kibitz.runtime.app.os.isatty", return_value=True), mock.patch(
                "kibitz.runtime.app.TerminalController", _FakeTerminalController
            ), mock.patch("kibitz.runtime.app.InputReader") as reader_cls, mock.patch(
                "kibitz.runtime.app.run_main_loop", side_effect=fake_run_main_loop
            ), mock.patch("kibitz.runtime.app.LatestRequestWorker.schedule"):
                app.run_app(root, Config(watch=False), stdin_fd=0, stdout_fd=1)

            self.assertEqual(seen["paths"], ["a.txt", "b.txt"])
            self.assertEqual(seen["selected"], "a.txt")
            self.assertEqual(seen["diff_width"], 100 - 20 - 1)
            self.assertFalse(seen["watch_enabled"])
            reader_cls.return_value.start.assert_called_once()
            reader_cls.return_value.stop.assert_called_once()

    @unittest.skipIf(shutil.which("git") is None, "git is required for bootstrap tests")
    def test_watcher_failure_becomes_banner(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            subprocess.run(["git", "init", "-q"], cwd=root, check=True)
            seen: dict[str, object] = {}

            def fake_run_main_loop(session, inbox, callbacks) -> None:
                seen["banner"] = session.state.banner
                seen["watcher"] = session.watcher

            with mock.patch("kibitz.runtime.app.os.isatty", return_value=True), mock.patch(
                "kibitz.runtime.app.TerminalController", _FakeTerminalController
            ), mock.patch("kibitz.runtime.app.InputReader"), mock.patch(
                "kibitz.runtime.app.run_main_loop", side_effect=fake_run_main_loop
            ), mock.patch(
                "kibitz.runtime.app.RepoWatcher.start", side_effect=WatcherError("inotify limit")
            ), self.assertLogs("kibitz.runtime.app", level="ERROR"):
                app.run_app(root, Config(), stdin_fd=0, stdout_fd=1)

            self.assertIn("watch disabled (inotify limit)", seen["banner"])
            self.assertIsNone(seen["watcher"])


if __name__ == "__main__":
    unittest.main()
