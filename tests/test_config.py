"""Tests for TOML config discovery, validation, and color resolution."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from kibitz.config import (
    LOCAL_CONFIG_FILENAME,
    Config,
    apply_overrides,
    load_config,
)
from kibitz.theme import DEFAULT_COLORS, PLAIN_COLORS, resolve_color


class LoadConfigTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.base = Path(self._tmp.name)
        self.global_path = self.base / "global.toml"
        self.repo = self.base / "repo"
        self.repo.mkdir()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_missing_files_give_defaults(self) -> None:
        self.assertEqual(load_config(self.repo, self.global_path), Config())

    def test_local_overrides_global_field_by_field(self) -> None:
        self.global_path.write_text(
            '[delta]\nargs = "--side-by-side"\ntheme = "light"\n\n[watch]\ndebounce_ms = 500\n',
            encoding="utf-8",
        )
        (self.repo / LOCAL_CONFIG_FILENAME).write_text(
            "[watch]\ndebounce_ms = 50\n\n[history]\nlimit = 20\n",
            encoding="utf-8",
        )

        config = load_config(self.repo, self.global_path)

        self.assertEqual(config.printer_args, "--side-by-side")
        self.assertEqual(config.theme, "light")
        self.assertEqual(config.debounce_ms, 50)
        self.assertEqual(config.history_limit, 20)

    def test_malformed_file_is_skipped(self) -> None:
        self.global_path.write_text("[delta\nargs = ", encoding="utf-8")
        (self.repo / LOCAL_CONFIG_FILENAME).write_text("[history]\nlimit = 7\n", encoding="utf-8")

        with self.assertLogs("kibitz.config", level="WARNING"):
            config = load_config(self.repo, self.global_path)

        self.assertEqual(config.history_limit, 7)
        self.assertEqual(config.printer_args, "")

    def test_invalid_values_are_ignored(self) -> None:
        self.global_path.write_text(
            '[delta]\nargs = 3\ntheme = "sepia"\n\n[watch]\ndebounce_ms = -1\n\n'
            "[history]\nlimit = 0\n\n[colors]\nsparkle = 3\n",
            encoding="utf-8",
        )

        with self.assertLogs("kibitz.config", level="WARNING") as logs:
            config = load_config(None, self.global_path)

        self.assertEqual(config, Config())
        self.assertEqual(len(logs.records), 5)

    def test_layout_section(self) -> None:
        self.global_path.write_text('[layout]\nmode = "Horizontal"\nmax_rows = 3\n', encoding="utf-8")
        (self.repo / LOCAL_CONFIG_FILENAME).write_text('[layout]\nmode = "diagonal"\nmax_rows = 0\n', encoding="utf-8")

        with self.assertLogs("kibitz.config", level="WARNING") as logs:
            config = load_config(self.repo, self.global_path)

        self.assertEqual(config.layout_mode, "horizontal")
        self.assertEqual(config.layout_max_rows, 3)
        self.assertEqual(len(logs.records), 2)

    def test_color_roles(self) -> None:
        self.global_path.write_text(
            '[colors]\naccent = "#ff8000"\nerror = "red"\nsuccess = 10\n',
            encoding="utf-8",
        )

        colors = load_config(None, self.global_path).colors

        self.assertEqual(colors.accent, "\033[38;2;255;128;0m")
        self.assertEqual(colors.error, "\033[31m")
        self.assertEqual(colors.success, "\033[38;5;10m")
        self.assertEqual(colors.warning, DEFAULT_COLORS.warning)

    def test_overrides_win(self) -> None:
        config = apply_overrides(Config(debounce_ms=300), printer_args="--dark", debounce_ms=0, no_watch=True)

        self.assertEqual(config.printer_args, "--dark")
        self.assertEqual(config.debounce_ms, 0)
        self.assertFalse(config.watch)
        self.assertIs(apply_overrides(config), config)


class ResolveColorTests(unittest.TestCase):
    def test_specs(self) -> None:
        self.assertEqual(resolve_color(208), "\033[38;5;208m")
        self.assertEqual(resolve_color("Cyan"), "\033[36m")
        self.assertEqual(resolve_color("default"), "")

    def test_invalid_specs_fall_back_to_default(self) -> None:
        with self.assertLogs("kibitz.theme", level="WARNING"):
            self.assertEqual(resolve_color(300), "")
            self.assertEqual(resolve_color(True), "")
            self.assertEqual(resolve_color("#12345z"), "")
            self.assertEqual(resolve_color("chartreuse-ish"), "")

    def test_plain_colors_keep_reverse_video(self) -> None:
        self.assertEqual(PLAIN_COLORS.accent, "")
        self.assertEqual(PLAIN_COLORS.reverse, DEFAULT_COLORS.reverse)


if __name__ == "__main__":
    unittest.main()
