#
# FlapTerm
# Copyright (c) 2025 Martynas Jocius
#
import unittest

from flapterm import PLACEHOLDER_TEXT
from flapterm.core.layout import Viewport, center_rows, layout, normalize_text, wrap_words


class LayoutShapeTests(unittest.TestCase):
    def _assert_shape(self, text, columns, rows):
        grid = layout(text, columns, rows)
        self.assertEqual(len(grid), rows, (text, columns, rows))
        for line in grid:
            self.assertEqual(len(line), columns, (text, columns, rows))

    def test_grid_dimensions_hold_for_many_viewports(self):
        # Longest word here (and in the placeholder) is ten characters
        texts = [
            "hello world",
            "",
            "the quick brown fox jumps over the lazy dog",
            "  leading and trailing  ",
        ]
        for columns in range(10, 30):
            for rows in range(1, 8):
                for text in texts:
                    self._assert_shape(text, columns, rows)

    def test_grid_dimensions_hold_for_narrow_viewports(self):
        for columns in range(3, 10):
            for rows in range(1, 8):
                self._assert_shape("a b c d e f g h i j k l m n o p", columns, rows)

    def test_layout_is_pure(self):
        first = layout("Meet me at the usual place", 12, 5)
        second = layout("Meet me at the usual place", 12, 5)
        self.assertEqual(first, second)

    def test_degenerate_viewport_is_empty(self):
        self.assertEqual(layout("hello", 0, 3), [])
        self.assertEqual(layout("hello", 10, 0), [])
        self.assertEqual(layout("hello", -4, -1), [])


class LayoutExampleTests(unittest.TestCase):
    def test_hello_world_is_centered(self):
        grid = layout("hello world", columns=15, rows=3)
        self.assertEqual(grid, [" " * 15, "  HELLO WORLD  ", " " * 15])

    def test_empty_text_uses_placeholder(self):
        grid = layout("", columns=20, rows=2)
        self.assertEqual(grid, ["      AWAITING      ", "     MESSAGE...     "])

    def test_none_and_empty_match(self):
        self.assertEqual(layout(None, 20, 4), layout("", 20, 4))

    def test_custom_placeholder(self):
        grid = layout("", 10, 1, placeholder="idle")
        self.assertEqual(grid, ["   IDLE   "])

    def test_vertical_centering_split(self):
        # Three content lines on seven rows: two above, two below
        grid = layout("aaa bbb ccc", columns=5, rows=7)
        blank = " " * 5
        self.assertEqual(grid[:2], [blank, blank])
        self.assertEqual(grid[2:5], [" AAA ", " BBB ", " CCC "])
        self.assertEqual(grid[5:], [blank, blank])

    def test_odd_padding_puts_extra_row_below(self):
        grid = layout("hi", columns=6, rows=4)
        self.assertEqual(grid, [" " * 6, "  HI  ", " " * 6, " " * 6])

    def test_excess_lines_are_dropped(self):
        grid = layout("one two three four five", columns=7, rows=2)
        self.assertEqual([line.strip() for line in grid], ["ONE", "TWO"])


class WrapTests(unittest.TestCase):
    def test_greedy_packing(self):
        self.assertEqual(
            wrap_words("THE QUICK BROWN FOX", 9),
            ["THE QUICK", "BROWN FOX"],
        )

    def test_word_at_budget_fits_without_wrap(self):
        columns = 10
        word = "X" * (columns - 2)
        grid = layout(word, columns, 1)
        self.assertEqual(grid, [" " + word + " "])

    def test_word_one_over_budget_still_lays_out(self):
        columns = 10
        word = "Y" * (columns - 1)
        grid = layout(word, columns, 3)
        self.assertEqual(len(grid), 3)
        self.assertEqual(grid[1], word + " ")

    def test_overlong_word_is_not_split(self):
        lines = wrap_words("A SUPERCALIFRAGILISTIC B", 8)
        self.assertEqual(lines, ["A", "SUPERCALIFRAGILISTIC", "B"])

    def test_overlong_word_overflows_row(self):
        grid = layout("abcdefghijkl", 8, 1)
        self.assertEqual(grid, ["ABCDEFGHIJKL"])

    def test_double_spaces_are_kept_inside_a_line(self):
        self.assertEqual(wrap_words("A  B", 10), ["A  B"])

    def test_newlines_become_spaces(self):
        self.assertEqual(normalize_text("line one\nline two"), "LINE ONE LINE TWO")

    def test_blank_text_falls_back(self):
        self.assertEqual(normalize_text("   "), PLACEHOLDER_TEXT)

    def test_center_rows_clamps_padding(self):
        self.assertEqual(center_rows(["ABCDEF"], 4, 1), ["ABCDEF"])


class ViewportTests(unittest.TestCase):
    def test_from_area_floors(self):
        self.assertEqual(Viewport.from_area(400, 300), Viewport(14, 7))

    def test_from_area_small_area_is_empty(self):
        viewport = Viewport.from_area(10, 10)
        self.assertEqual(viewport, Viewport(0, 0))
        self.assertTrue(viewport.is_empty)

    def test_from_area_negative_is_clamped(self):
        self.assertEqual(Viewport.from_area(-50, -50, 2, 2), Viewport(0, 0))


if __name__ == "__main__":
    unittest.main()
