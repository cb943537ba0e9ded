"""Regression tests for ANSI-aware width measurement and clipping."""

import unittest

from lazyaws import ansi as ansi_mod


class DisplayWidthTests(unittest.TestCase):
    def test_escape_sequences_have_no_width(self) -> None:
        self.assertEqual(ansi_mod.display_width("\033[1;31mabc\033[0m"), 3)

    def test_wide_characters_take_two_columns(self) -> None:
        self.assertEqual(ansi_mod.display_width("日本"), 4)

    def test_tabs_expand_to_next_stop(self) -> None:
        self.assertEqual(ansi_mod.display_width("ab\tc"), 9)


class ClipTests(unittest.TestCase):
    def test_clip_keeps_escapes_and_cuts_text(self) -> None:
        self.assertEqual(ansi_mod.clip_ansi_line("\033[7mabcdef\033[0m", 3), "\033[7mabc")

    def test_wide_character_never_straddles_edge(self) -> None:
        self.assertEqual(ansi_mod.clip_ansi_line("a日", 2), "a")

    def test_non_positive_width_is_empty(self) -> None:
        self.assertEqual(ansi_mod.clip_ansi_line("abc", 0), "")

    def test_fit_pads_short_lines(self) -> None:
        self.assertEqual(ansi_mod.fit_ansi_line("ab", 4), "ab  ")
        self.assertEqual(ansi_mod.fit_ansi_line("abcdef", 4), "abcd")


if __name__ == "__main__":
    unittest.main()
