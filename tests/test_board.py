#
# FlapTerm
# Copyright (c) 2025 Martynas Jocius
#
import unittest
from datetime import datetime, timezone

from flapterm.core.board import BoardConfig, BoardRenderer, format_header
from flapterm.core.layout import Viewport, layout
from flapterm.core.messages import DisplayMessage


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class BoardRendererTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.config = BoardConfig(flip_duration=1.0, jitter=0.0)
        self.board = BoardRenderer(Viewport(15, 3), self.config, clock=self.clock)

    def _settle(self):
        self.clock.now += 10.0
        self.board.tick()

    def test_show_targets_layout_grid(self):
        message = DisplayMessage(sender="amy@example.com", text="hello world")
        changed = self.board.show(message)
        self.assertEqual(changed, len("HELLOWORLD"))
        self.assertEqual(self.board.target_rows(), layout("hello world", 15, 3))
        self.assertTrue(self.board.is_animating)

        self._settle()
        self.assertFalse(self.board.is_animating)
        self.assertEqual(self.board.displayed_rows(), layout("hello world", 15, 3))
        self.assertEqual(self.board.snapshot(), layout("hello world", 15, 3))

    def test_only_changed_cells_are_retargeted(self):
        self.board.show(DisplayMessage(sender="a", text="cat"))
        self._settle()
        changed = self.board.show(DisplayMessage(sender="a", text="car"))
        self.assertEqual(changed, 1)
        middle = self.board.viewport.rows // 2
        flipping = [
            (r, c)
            for r in range(self.board.viewport.rows)
            for c in range(self.board.viewport.columns)
            if self.board.cell(r, c).is_flipping
        ]
        self.assertEqual(flipping, [(middle, 8)])

    def test_none_and_empty_message_render_the_same(self):
        other = BoardRenderer(Viewport(15, 3), self.config, clock=self.clock)
        self.board.show(None)
        other.show(DisplayMessage(sender="bob", text=""))
        self.assertEqual(self.board.target_rows(), other.target_rows())

    def test_resize_keeps_overlap_and_relayouts(self):
        self.board.show(DisplayMessage(sender="a", text="hi"))
        self._settle()
        kept = self.board.cell(0, 0)

        self.board.resize(Viewport(20, 5))
        self.assertIs(self.board.cell(0, 0), kept)
        self.assertEqual(self.board.target_rows(), layout("hi", 20, 5))
        self._settle()
        self.assertEqual(self.board.displayed_rows(), layout("hi", 20, 5))

    def test_resize_to_same_viewport_is_noop(self):
        self.board.show(None)
        self.assertEqual(self.board.resize(Viewport(15, 3)), 0)

    def test_empty_viewport_produces_empty_board(self):
        board = BoardRenderer(Viewport(0, 0), self.config, clock=self.clock)
        self.assertEqual(board.show(DisplayMessage(sender="a", text="hello")), 0)
        self.assertEqual(board.snapshot(), [])

    def test_overlong_word_is_clipped_at_board_edge(self):
        board = BoardRenderer(Viewport(5, 1), self.config, clock=self.clock)
        board.show(DisplayMessage(sender="a", text="abcdefgh"))
        self.assertEqual(board.target_rows(), ["ABCDE"])

    def test_replay_reflips_everything(self):
        self.board.show(DisplayMessage(sender="a", text="hey"))
        self._settle()
        self.assertEqual(self.board.replay(), 3)
        self.assertTrue(self.board.is_animating)
        self.assertEqual(self.board.snapshot()[1].strip(), "")

    def test_tick_reports_finished_cells(self):
        self.board.show(DisplayMessage(sender="a", text="ok"))
        self.clock.now = 0.5
        self.assertEqual(self.board.tick(), 0)
        self.clock.now = 1.0
        self.assertEqual(self.board.tick(), 2)

    def test_header_present_only_with_message(self):
        self.board.show(None)
        self.assertIsNone(self.board.header)
        self.board.show(DisplayMessage(sender="amy@example.com", text="x"))
        self.assertEqual(self.board.header, "AMY@EXAMPLE.COM | ...")


class HeaderFormatTests(unittest.TestCase):
    def test_header_uses_local_time(self):
        stamp = datetime(2024, 5, 1, 12, 30, 45, tzinfo=timezone.utc)
        message = DisplayMessage(sender="bob", text="hi", timestamp=stamp)
        expected = stamp.astimezone().strftime("%H:%M:%S")
        self.assertEqual(format_header(message), f"BOB | {expected}")

    def test_no_message_no_header(self):
        self.assertIsNone(format_header(None))


class BoardConfigTests(unittest.TestCase):
    def test_from_config_overrides_and_defaults(self):
        config = BoardConfig.from_config(
            {"flip_duration": 0.5, "placeholder": "waiting", "colors": {"text": "white"}}
        )
        self.assertEqual(config.flip_duration, 0.5)
        self.assertEqual(config.placeholder, "waiting")
        self.assertEqual(config.colors["text"], "white")
        self.assertIn("flipping", config.colors)
        self.assertEqual(config.cell_width, BoardConfig().cell_width)

    def test_from_empty_config(self):
        self.assertEqual(BoardConfig.from_config(None), BoardConfig())


if __name__ == "__main__":
    unittest.main()
