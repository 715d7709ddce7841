"""Tests for terminal mode control sequences and frame writes.

Verifies raw-mode lifecycle safety and the escape payloads used to enter
and leave the alternate screen.
"""

from __future__ import annotations

import termios
import unittest
from unittest import mock

from kibitz.terminal import ENTER_TUI, LEAVE_TUI, TerminalController


class TerminalBehaviorTests(unittest.TestCase):
    def test_enable_and_disable_tui_mode_use_alternate_screen_sequences(self) -> None:
        saved_state = [1, 2, 3]

        with mock.patch("kibitz.terminal.termios.tcgetattr", return_value=saved_state), mock.patch(
            "kibitz.terminal.tty.setraw"
        ) as setraw_mock, mock.patch("kibitz.terminal.os.write") as write_mock, mock.patch(
            "kibitz.terminal.termios.tcsetattr"
        ) as setattr_mock:
            controller = TerminalController(stdin_fd=0, stdout_fd=1)
            controller.enable_tui_mode()
            self.assertTrue(controller.active)
            controller.disable_tui_mode()

        setraw_mock.assert_called_once_with(0, termios.TCSAFLUSH)
        self.assertEqual(write_mock.call_args_list[0].args, (1, ENTER_TUI))
        self.assertEqual(write_mock.call_args_list[1].args, (1, LEAVE_TUI))
        self.assertIn(b"\x1b[?1006h", ENTER_TUI)
        setattr_mock.assert_called_once_with(0, termios.TCSAFLUSH, saved_state)
        self.assertFalse(controller.active)

    def test_raw_mode_restores_terminal_after_exception(self) -> None:
        with mock.patch("kibitz.terminal.termios.tcgetattr", return_value=[0]):
            controller = TerminalController(stdin_fd=0, stdout_fd=1)

        with mock.patch.object(controller, "enable_tui_mode") as enable_mock, mock.patch.object(
            controller, "disable_tui_mode"
        ) as disable_mock:
            with self.assertRaises(RuntimeError):
                with controller.raw_mode():
                    raise RuntimeError("boom")

        enable_mock.assert_called_once()
        disable_mock.assert_called_once()

    def test_write_frame_retries_partial_writes(self) -> None:
        with mock.patch("kibitz.terminal.termios.tcgetattr", return_value=[0]):
            controller = TerminalController(stdin_fd=0, stdout_fd=1)
        chunks: list[bytes] = []

        def short_write(fd: int, data: memoryview) -> int:
            piece = bytes(data[:3])
            chunks.append(piece)
            return len(piece)

        with mock.patch("kibitz.terminal.os.write", side_effect=short_write):
            controller.write_frame("héllo")

        self.assertEqual(b"".join(chunks), "héllo".encode("utf-8"))
        self.assertGreater(len(chunks), 1)


if __name__ == "__main__":
    unittest.main()
