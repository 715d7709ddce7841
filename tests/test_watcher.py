"""Tests for event filtering and the debounced repository watcher."""

from __future__ import annotations

import shutil
import subprocess
import tempfile
import threading
import time
import unittest
from pathlib import Path
from unittest import mock

from kibitz.errors import WatcherError
from kibitz.gitignore import clear_gitignore_cache, get_gitignore_matcher
from kibitz.watcher import RepoWatcher, is_relevant_path


class RelevantPathTests(unittest.TestCase):
    def setUp(self) -> None:
        clear_gitignore_cache()
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve()

    def tearDown(self) -> None:
        clear_gitignore_cache()
        self._tmp.cleanup()

    def test_git_internals_are_filtered(self) -> None:
        git_dir = self.root / ".git"

        self.assertTrue(is_relevant_path(self.root, str(git_dir / "index")))
        self.assertTrue(is_relevant_path(self.root, str(git_dir / "HEAD")))
        self.assertTrue(is_relevant_path(self.root, str(git_dir / "refs" / "heads" / "main")))
        self.assertFalse(is_relevant_path(self.root, str(git_dir / "objects" / "ab" / "cdef")))
        self.assertFalse(is_relevant_path(self.root, str(git_dir / "index.lock")))
        self.assertFalse(is_relevant_path(self.root, str(git_dir)))

    def test_paths_outside_root_are_ignored(self) -> None:
        self.assertFalse(is_relevant_path(self.root, "/definitely/elsewhere.txt"))
        self.assertFalse(is_relevant_path(self.root, str(self.root)))

    def test_working_files_are_relevant(self) -> None:
        self.assertTrue(is_relevant_path(self.root, str(self.root / "src" / "main.py")))
        self.assertTrue(is_relevant_path(self.root, str(self.root / "src" / "main.py").encode()))

    @unittest.skipIf(shutil.which("git") is None, "git is required for gitignore lookups")
    def test_gitignored_paths_are_dropped(self) -> None:
        subprocess.run(["git", "init", "-q"], cwd=self.root, check=True)
        (self.root / ".gitignore").write_text("build/\n*.log\n", encoding="utf-8")
        (self.root / "build").mkdir()
        (self.root / "build" / "out.o").write_text("x", encoding="utf-8")
        (self.root / "debug.log").write_text("x", encoding="utf-8")

        matcher = get_gitignore_matcher(self.root)
        self.assertIsNotNone(matcher)
        self.assertFalse(is_relevant_path(self.root, str(self.root / "build" / "out.o")))
        self.assertFalse(is_relevant_path(self.root, str(self.root / "debug.log")))
        self.assertTrue(is_relevant_path(self.root, str(self.root / "main.py")))


class RepoWatcherDebounceTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve()
        self.fired = threading.Event()
        self.count = 0

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _on_change(self) -> None:
        self.count += 1
        self.fired.set()

    def test_burst_fires_once(self) -> None:
        watcher = RepoWatcher(self.root, self._on_change, debounce_ms=50)

        for _ in range(10):
            watcher.notify()

        self.assertTrue(self.fired.wait(2.0))
        time.sleep(0.2)
        self.assertEqual(self.count, 1)

    def test_paused_watcher_drops_events(self) -> None:
        watcher = RepoWatcher(self.root, self._on_change, debounce_ms=20)
        watcher.notify()
        watcher.pause()
        watcher.notify()

        self.assertFalse(self.fired.wait(0.2))
        self.assertTrue(watcher.paused)

        watcher.resume()
        watcher.notify()
        self.assertTrue(self.fired.wait(2.0))

    def test_start_failure_raises_watcher_error(self) -> None:
        with mock.patch("kibitz.watcher.Observer") as observer_cls:
            observer_cls.return_value.schedule.side_effect = OSError("inotify watch limit reached")
            watcher = RepoWatcher(self.root, self._on_change)

            with self.assertRaisesRegex(WatcherError, "inotify watch limit"):
                watcher.start()

        self.assertFalse(watcher.running)

    def test_file_write_triggers_callback(self) -> None:
        watcher = RepoWatcher(self.root, self._on_change, debounce_ms=50)
        watcher.start()
        try:
            (self.root / "new.txt").write_text("hello\n", encoding="utf-8")
            self.assertTrue(self.fired.wait(5.0))
        finally:
            watcher.stop()
        self.assertFalse(watcher.running)


if __name__ == "__main__":
    unittest.main()
