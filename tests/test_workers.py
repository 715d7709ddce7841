"""Tests for latest-request-wins background workers."""

from __future__ import annotations

import queue
import threading
import unittest
from pathlib import Path

from kibitz.change_tree import DiffMode, FileStatus
from kibitz.printer import DiffPrinter, DiffTarget, RenderRequest
from kibitz.runtime.workers import (
    CollectRequest,
    LatestRequestWorker,
    make_collect_handler,
    make_render_handler,
)


class LatestRequestWorkerTests(unittest.TestCase):
    def test_superseded_requests_never_run(self) -> None:
        started = threading.Event()
        release = threading.Event()
        handled: list[int] = []
        results: queue.Queue[int] = queue.Queue()

        def handler(request: int) -> int:
            handled.append(request)
            if request == 1:
                started.set()
                release.wait(5.0)
            return request * 10

        worker = LatestRequestWorker("test", handler, results.put)
        worker.schedule(1)
        self.assertTrue(started.wait(5.0))
        for request in (2, 3, 4):
            worker.schedule(request)
        release.set()

        self.assertEqual(results.get(timeout=5.0), 10)
        self.assertEqual(results.get(timeout=5.0), 40)
        worker.join(5.0)
        self.assertEqual(handled, [1, 4])
        self.assertFalse(worker.busy)

    def test_handler_exception_does_not_stop_worker(self) -> None:
        results: queue.Queue[str] = queue.Queue()

        def handler(request: str) -> str:
            if request == "boom":
                raise ValueError("boom")
            return request

        worker = LatestRequestWorker("test", handler, results.put)
        with self.assertLogs("kibitz.runtime.workers", level="ERROR"):
            worker.schedule("boom")
            worker.join(5.0)
        worker.schedule("ok")

        self.assertEqual(results.get(timeout=5.0), "ok")


class HandlerTests(unittest.TestCase):
    def test_collect_failure_becomes_error_message(self) -> None:
        handler = make_collect_handler(Path("/nonexistent/kibitz-repo"))

        with self.assertLogs("kibitz", level="WARNING"):
            message = handler(CollectRequest(seq=3, depth=0, commit=None, history_limit=10))

        self.assertEqual(message.seq, 3)
        self.assertIsNone(message.snapshot)
        self.assertTrue(message.error)

    def test_request_without_targets_renders_empty(self) -> None:
        printer = DiffPrinter(command=("kibitz-no-such-printer",))
        handler = make_render_handler(Path("/nonexistent/kibitz-repo"), printer)
        request = RenderRequest(path="x", mode=DiffMode.UNSTAGED, depth=0, generation=1, seq=5, width=80)

        message = handler(request)

        self.assertIs(message.request, request)
        self.assertIsNone(message.error)
        self.assertEqual(message.text, "")

    def test_render_failure_becomes_error_message(self) -> None:
        printer = DiffPrinter(command=("kibitz-no-such-printer",))
        handler = make_render_handler(Path("/nonexistent/kibitz-repo"), printer)
        request = RenderRequest(
            path="x",
            mode=DiffMode.UNSTAGED,
            depth=0,
            generation=1,
            seq=6,
            width=80,
            targets=(DiffTarget("x", FileStatus.MODIFIED),),
        )

        with self.assertLogs("kibitz", level="WARNING"):
            message = handler(request)

        self.assertIsNone(message.text)
        self.assertTrue(message.error)


if __name__ == "__main__":
    unittest.main()
