from __future__ import annotations

import unittest

from lazyaws.navigation import NavAction, next_index, scroll_offset


class NextIndexTests(unittest.TestCase):
    def test_empty_list_always_yields_zero(self) -> None:
        for action in NavAction:
            self.assertEqual(next_index(action, 5, 0, 20), 0)

    def test_single_steps_clamp_without_wraparound(self) -> None:
        self.assertEqual(next_index(NavAction.UP, 0, 5, 20), 0)
        self.assertEqual(next_index(NavAction.DOWN, 4, 5, 20), 4)
        self.assertEqual(next_index(NavAction.DOWN, 2, 5, 20), 3)

    def test_top_and_bottom(self) -> None:
        self.assertEqual(next_index(NavAction.TOP, 7, 10, 20), 0)
        self.assertEqual(next_index(NavAction.BOTTOM, 0, 10, 20), 9)

    def test_half_page_moves_by_half_the_page_size(self) -> None:
        self.assertEqual(next_index(NavAction.HALF_PAGE_DOWN, 0, 100, 20), 10)
        self.assertEqual(next_index(NavAction.HALF_PAGE_UP, 25, 100, 20), 15)

    def test_half_page_moves_at_least_one_row(self) -> None:
        self.assertEqual(next_index(NavAction.HALF_PAGE_DOWN, 0, 10, 1), 1)

    def test_full_page_clamps_to_last_row(self) -> None:
        self.assertEqual(next_index(NavAction.PAGE_DOWN, 95, 100, 20), 99)
        self.assertEqual(next_index(NavAction.PAGE_UP, 5, 100, 20), 0)

    def test_result_always_within_bounds(self) -> None:
        for action in NavAction:
            for current in range(-3, 15):
                result = next_index(action, current, 10, 4)
                self.assertGreaterEqual(result, 0)
                self.assertLessEqual(result, 9)


class ScrollOffsetTests(unittest.TestCase):
    def test_document_shorter_than_viewport_never_scrolls(self) -> None:
        self.assertEqual(scroll_offset(NavAction.DOWN, 0, 20, 5, 10), 0)
        self.assertEqual(scroll_offset(NavAction.BOTTOM, 0, 20, 5, 10), 0)

    def test_bottom_shows_last_page(self) -> None:
        self.assertEqual(scroll_offset(NavAction.BOTTOM, 0, 20, 50, 10), 40)

    def test_page_down_clamps_to_max_offset(self) -> None:
        self.assertEqual(scroll_offset(NavAction.PAGE_DOWN, 35, 20, 50, 10), 40)
        self.assertEqual(scroll_offset(NavAction.HALF_PAGE_UP, 3, 20, 50, 10), 0)


if __name__ == "__main__":
    unittest.main()
