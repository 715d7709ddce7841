"""Tests for the first-parent history pointer."""

from __future__ import annotations

import unittest

from kibitz.commits import CommitInfo, CommitNavigator


def _commits(count: int) -> list[CommitInfo]:
    return [CommitInfo(oid=f"{index:040x}", short_oid=f"{index:07x}", summary=f"c{index}") for index in range(count)]


class CommitNavigatorTests(unittest.TestCase):
    def test_back_stops_at_oldest_available_commit(self) -> None:
        navigator = CommitNavigator(_commits(3))

        self.assertTrue(navigator.back())
        self.assertTrue(navigator.back())
        self.assertTrue(navigator.back())
        self.assertFalse(navigator.back())
        self.assertEqual(navigator.depth, 3)
        self.assertEqual(navigator.current().summary, "c2")

    def test_forward_stops_at_working_tree(self) -> None:
        navigator = CommitNavigator(_commits(3))
        navigator.back()

        self.assertTrue(navigator.forward())
        self.assertFalse(navigator.forward())
        self.assertEqual(navigator.depth, 0)
        self.assertIsNone(navigator.current())
        self.assertFalse(navigator.in_history)

    def test_depth_one_is_head(self) -> None:
        navigator = CommitNavigator(_commits(2))
        navigator.back()

        self.assertTrue(navigator.in_history)
        self.assertEqual(navigator.current().summary, "c0")

    def test_no_commits_pins_depth_to_zero(self) -> None:
        navigator = CommitNavigator()

        self.assertFalse(navigator.back())
        self.assertEqual(navigator.depth, 0)

    def test_update_commits_clamps_depth(self) -> None:
        navigator = CommitNavigator(_commits(5))
        for _ in range(4):
            navigator.back()

        self.assertTrue(navigator.update_commits(_commits(2)))
        self.assertEqual(navigator.depth, 2)
        self.assertFalse(navigator.update_commits(_commits(4)))
        self.assertEqual(navigator.limit, 4)


if __name__ == "__main__":
    unittest.main()
