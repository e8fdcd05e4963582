#!/usr/bin/env python3
#
# FlapTerm
# Copyright (c) 2025 Martynas Jocius
#

import os
import sys
import time
from collections import deque
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import psutil
from rich.align import Align
from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .. import (
    UI_APP_NAME,
    UI_PANEL_BOARD,
    UI_PANEL_LOG,
    UI_UNKNOWN_USER,
    VERSION,
)
from ..core.board import BoardRenderer
from ..core.layout import Viewport
from ..utils.colors import DEFAULT_BOARD_COLORS, cell_style

DEFAULT_PANEL_PADDING = (0, 1)
HEADER_HEIGHT = 3
STATUS_HEIGHT = 1
LOG_PANEL_HEIGHT = 8
BOARD_HEADER_LINES = 1  # Sender/time line above the grid


@dataclass
class LayoutContext:
    panel_padding: Tuple[int, int]
    terminal_width: int
    terminal_height: int
    header_height: int
    log_height: int
    status_height: int
    board_height: int


@dataclass
class HelpDialogBuilder:
    app_name: str
    version: str
    keymaps: Sequence[Tuple[str, str]] = (
        ("?", "Show help"),
        ("q", "Quit FlapTerm"),
        ("c", "Toggle log panel"),
        ("r", "Replay flip"),
        ("Ctrl+C", "Force quit"),
        ("Esc", "Close dialog"),
    )

    def build(self) -> Group:
        title = Text(f"{self.app_name} {self.version}", style="bold bright_white")
        tagline = Text("Split-flap message board for the terminal", style="white")
        divider = Text("─" * 50, style="dim white")

        help_table = Table(
            show_header=True, header_style="bold cyan", box=None, padding=(0, 2)
        )
        help_table.add_column("Key", style="bold yellow", width=8)
        help_table.add_column("Action", style="white", width=20)
        help_table.add_column("Key", style="bold yellow", width=8)
        help_table.add_column("Action", style="white", width=20)

        keymap_list = list(self.keymaps)
        for i in range(0, len(keymap_list), 2):
            first_key, first_action = keymap_list[i]
            second_key, second_action = (
                keymap_list[i + 1] if i + 1 < len(keymap_list) else ("", "")
            )
            help_table.add_row(first_key, first_action, second_key, second_action)

        footer = Text()
        footer.append("Press ", style="dim white")
        footer.append("q", style="bold yellow")
        footer.append(" or ", style="dim white")
        footer.append("Esc", style="bold yellow")
        footer.append(" to close this dialog", style="dim white")

        return Group(
            Align.center(title),
            Align.center(tagline),
            Text(""),
            Align.center(divider),
            help_table,
            Align.center(divider),
            Text(""),
            Align.center(footer),
        )


def render_board_text(renderer: BoardRenderer, now: Optional[float] = None) -> Text:
    """Draw the renderer's cells as styled text, one glyph per cell plus spacing."""
    now = renderer.clock() if now is None else now
    colors = renderer.config.colors
    spacer = " " * max(0, renderer.config.cell_width - 1)
    spacer_lines = max(0, renderer.config.cell_height - 1)

    board = Text(no_wrap=True, overflow="crop")
    for r, row in enumerate(renderer.cells):
        if r:
            board.append("\n" * (1 + spacer_lines))
        for c, cell in enumerate(row):
            glyph = cell.glyph(now)
            board.append(glyph or " ", style=cell_style(colors, cell.is_flipping, not glyph))
            if spacer and c < len(row) - 1:
                board.append(spacer)
    return board


def format_board_plain(renderer: BoardRenderer, now: Optional[float] = None) -> str:
    """Plain text board for non-interactive output."""
    rows = renderer.snapshot(now)
    width = renderer.viewport.columns
    lines = []
    header = renderer.header
    if header:
        lines.append(header.center(width + 2).rstrip())
    lines.append("+" + "-" * width + "+")
    lines.extend(f"|{row}|" for row in rows)
    lines.append("+" + "-" * width + "+")
    return "\n".join(lines)


class TUIManager:
    """Manages the terminal user interface for FlapTerm."""

    @staticmethod
    def _padding_metrics(padding):
        """Calculate vertical and horizontal padding totals."""
        if isinstance(padding, tuple):
            if len(padding) == 2:
                return padding[0] * 2, padding[1] * 2
            if len(padding) == 4:
                top, right, bottom, left = padding
                return top + bottom, left + right
        return 0, 0

    def __init__(self):
        self.console = Console()
        self.log_buffer = deque(maxlen=50)  # Keep last 50 log messages
        self.log_file_handle = None
        self.log_file_path = None
        self.live_display = None
        self.tui_enabled = False
        self.log_visible = True
        self.help_dialog_visible = False
        self.is_quitting = False

        self.board: Optional[BoardRenderer] = None
        self.user_email: Optional[str] = None

        self.activity_chars = ["◐", "◓", "◑", "◒"]
        self.activity_index = 0

        self.start_time = time.time()
        self.last_cpu_check = 0
        self.cached_cpu_percent = 0.0

        # Tmux compatibility
        self.is_tmux = os.environ.get("TMUX") is not None
        self.last_update_time = 0
        self.update_throttle = 0.1 if self.is_tmux else 0.05
        self.cached_terminal_size = None
        self.last_size_check = 0

    def _get_safe_terminal_size(self):
        """Get terminal size, cached briefly to reduce overhead."""
        current_time = time.time()
        cache_duration = 0.6 if self.is_tmux else 0.5
        if (
            self.cached_terminal_size is not None
            and current_time - self.last_size_check < cache_duration
        ):
            return self.cached_terminal_size

        try:
            size = self.console.size
            width, height = size.width, size.height
        except Exception:
            return (80, 24)

        if width <= 0 or height <= 0:
            return self.cached_terminal_size or (80, 24)

        self.cached_terminal_size = (width, height)
        self.last_size_check = current_time
        return self.cached_terminal_size

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    def _emit_log_event(self, message):
        timestamped = f"{time.strftime('%H:%M:%S')} {message}"

        if self.log_file_handle:
            try:
                self.log_file_handle.write(timestamped + "\n")
                self.log_file_handle.flush()
            except OSError:
                pass

        if self.tui_enabled:
            self.log_buffer.append(timestamped)
        else:
            print(timestamped)

    def log(self, message):
        """Add a log message to the log panel (or stdout without the TUI)."""
        self._emit_log_event(message)
        if self.tui_enabled and self.log_visible:
            self.update_display()

    def start_file_logging(self, log_path):
        """Enable file logging to the specified path."""
        try:
            if self.log_file_handle:
                self.stop_file_logging()
            self.log_file_handle = open(log_path, "w", encoding="utf-8")
            self.log_file_path = log_path
        except OSError as exc:
            self.log_file_handle = None
            self.log_file_path = None
            print(f"Warning: unable to start file logging ({exc})")

    def stop_file_logging(self):
        """Close file logging if active."""
        if self.log_file_handle:
            try:
                self.log_file_handle.flush()
                self.log_file_handle.close()
            except OSError:
                pass
            finally:
                self.log_file_handle = None
                self.log_file_path = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    def enable_tui(self):
        self.tui_enabled = True

    def disable_tui(self):
        self.tui_enabled = False
        if self.live_display:
            self.live_display.stop()
            self.live_display = None

    def set_quitting(self, quitting=True):
        self.is_quitting = quitting

    def attach_board(self, renderer: BoardRenderer, user_email: Optional[str] = None):
        """Show ``renderer`` in the board panel."""
        self.board = renderer
        if user_email is not None:
            self.user_email = user_email

    def toggle_log_panel(self):
        self.log_visible = not self.log_visible
        self.cached_terminal_size = None

    def hide_help_dialog(self):
        self.help_dialog_visible = False

    def toggle_help_dialog(self):
        self.help_dialog_visible = not self.help_dialog_visible

    def replay_board(self):
        if self.board is None:
            return 0
        changed = self.board.replay()
        self.log(f"Replaying board ({changed} cells)")
        return changed

    def get_activity_symbol(self):
        """Spinner while the board is flipping, stop symbol when quitting."""
        if self.is_quitting:
            return "⏹"
        if self.board is None or not self.board.is_animating:
            return "●"
        symbol = self.activity_chars[self.activity_index]
        self.activity_index = (self.activity_index + 1) % len(self.activity_chars)
        return symbol

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------
    def _build_layout_context(self) -> LayoutContext:
        terminal_width, terminal_height = self._get_safe_terminal_size()
        log_height = LOG_PANEL_HEIGHT if self.log_visible else 0
        board_height = max(
            3, terminal_height - HEADER_HEIGHT - log_height - STATUS_HEIGHT
        )
        return LayoutContext(
            panel_padding=DEFAULT_PANEL_PADDING,
            terminal_width=terminal_width,
            terminal_height=terminal_height,
            header_height=HEADER_HEIGHT,
            log_height=log_height,
            status_height=STATUS_HEIGHT,
            board_height=board_height,
        )

    def board_viewport(self, context: Optional[LayoutContext] = None) -> Viewport:
        """Cells that fit inside the board panel for the current terminal size."""
        context = context or self._build_layout_context()
        vertical_pad, horizontal_pad = self._padding_metrics(context.panel_padding)
        inner_width = context.terminal_width - 2 - horizontal_pad
        inner_height = context.board_height - 2 - vertical_pad - BOARD_HEADER_LINES

        if self.board is not None:
            cell_width = self.board.config.cell_width
            cell_height = self.board.config.cell_height
        else:
            cell_width = cell_height = 1

        # The last column and row need no trailing spacer
        spacing_w = max(0, cell_width - 1)
        spacing_h = max(0, cell_height - 1)
        return Viewport.from_area(
            inner_width + spacing_w, inner_height + spacing_h, cell_width, cell_height
        )

    def sync_board(self, now: Optional[float] = None) -> int:
        """Fit the board to the terminal and advance its flips."""
        if self.board is None:
            return 0
        self.board.resize(self.board_viewport(), now=now)
        return self.board.tick(now)

    def create_layout(self) -> Layout:
        """Create the TUI layout."""
        context = self._build_layout_context()
        layout = Layout()
        sections = [
            Layout(name="header", size=context.header_height),
            Layout(name="board", size=context.board_height),
        ]
        if self.log_visible:
            sections.append(Layout(name="log", size=context.log_height))
        sections.append(Layout(name="status", size=context.status_height))
        layout.split_column(*sections)

        self._populate_header(layout, context)
        self._populate_board(layout, context)
        if self.log_visible:
            self._populate_log(layout, context)
        self._populate_status(layout)

        if self.help_dialog_visible:
            return self._build_help_overlay(context)
        return layout

    def _populate_header(self, layout: Layout, context: LayoutContext) -> None:
        app_text = Text(f"{UI_APP_NAME} {VERSION}", style="bold white")
        help_text = Text("Press ? for help", style="bold white")
        metrics_text = self._build_system_metrics_text(self.get_activity_symbol())

        header_table = Table.grid(expand=True)
        if context.terminal_width >= 60:
            header_table.add_column(justify="left")
            header_table.add_column(justify="center")
            header_table.add_column(justify="right")
            header_table.add_row(app_text, metrics_text, help_text)
        else:
            header_table.add_column(justify="left")
            header_table.add_column(justify="right")
            header_table.add_row(app_text, metrics_text)

        layout["header"].update(
            Panel(header_table, border_style="grey50", padding=(0, 2))
        )

    def _build_system_metrics_text(self, indicator_symbol: str) -> Text:
        metrics_text = Text()
        state = "Flipping" if self.board is not None and self.board.is_animating else "Idle"
        metrics_text.append(f"{indicator_symbol} {state}", style="bright_white")

        try:
            current_time = time.time()
            if current_time - self.last_cpu_check > 1.0:
                self.cached_cpu_percent = psutil.cpu_percent(interval=None)
                self.last_cpu_check = current_time
            ram_percent = psutil.virtual_memory().percent
        except (psutil.Error, OSError):
            metrics_text.append("  System metrics unavailable", style="dim red")
            return metrics_text

        metrics_text.append("  ", style="dim white")
        metrics_text.append(f"CPU: {int(self.cached_cpu_percent)}%", style="yellow")
        metrics_text.append("  ", style="dim white")
        metrics_text.append(f"RAM: {int(ram_percent)}%", style="green")
        return metrics_text

    def _populate_board(self, layout: Layout, context: LayoutContext) -> None:
        colors = self.board.config.colors if self.board else DEFAULT_BOARD_COLORS
        if self.board is None:
            content = Align.center(Text("No board attached", style="dim white"), vertical="middle")
        else:
            header_style = colors.get("header", DEFAULT_BOARD_COLORS["header"])
            header = Text(self.board.header or "", style=header_style)
            content = Group(
                Align.center(header),
                Align.center(render_board_text(self.board), vertical="middle"),
            )
        layout["board"].update(
            Panel(
                content,
                title=UI_PANEL_BOARD,
                border_style=colors.get("border", DEFAULT_BOARD_COLORS["border"]),
                padding=context.panel_padding,
            )
        )

    def _populate_log(self, layout: Layout, context: LayoutContext) -> None:
        log_inner = max(1, context.log_height - 2)
        visible_lines = list(self.log_buffer)[-log_inner:]
        if len(visible_lines) < log_inner:
            visible_lines = [""] * (log_inner - len(visible_lines)) + visible_lines

        max_log_width = max(20, context.terminal_width - 4)
        log_text = "\n".join(line[:max_log_width] for line in visible_lines)
        layout["log"].update(
            Panel(
                log_text,
                title=UI_PANEL_LOG,
                border_style="yellow",
                padding=(0, 1),
            )
        )

    def _populate_status(self, layout: Layout) -> None:
        status = Text(
            f"Logged in as: {self.user_email or UI_UNKNOWN_USER}", style="grey50"
        )
        layout["status"].update(Align.center(status))

    def _build_help_overlay(self, context: LayoutContext) -> Layout:
        dialog_height = min(16, max(3, context.terminal_height - 4))
        dialog_width = min(70, max(20, context.terminal_width - 8))
        top_space = max(1, (context.terminal_height - dialog_height) // 2)
        bottom_space = max(1, context.terminal_height - dialog_height - top_space)
        side_margin = max(2, (context.terminal_width - dialog_width) // 2)

        overlay = Layout()
        overlay.split_column(
            Layout(name="overlay_top", size=top_space),
            Layout(name="overlay_center", size=dialog_height),
            Layout(name="overlay_bottom", size=bottom_space),
        )
        overlay["overlay_center"].split_row(
            Layout(name="overlay_left", size=side_margin),
            Layout(name="overlay_dialog", size=dialog_width),
            Layout(name="overlay_right", size=side_margin),
        )
        overlay["overlay_dialog"].update(
            Panel(
                HelpDialogBuilder(UI_APP_NAME, VERSION).build(),
                title="Help & Keybindings",
                border_style="bright_cyan",
                padding=(1, 2),
            )
        )
        for name in ("overlay_top", "overlay_bottom", "overlay_left", "overlay_right"):
            overlay[name].update("")
        return overlay

    # ------------------------------------------------------------------
    # Live display
    # ------------------------------------------------------------------
    def start_live_display(self):
        """Start the live TUI display"""
        if not self.tui_enabled:
            return

        try:
            self.live_display = Live(
                self.create_layout(),
                console=self.console,
                refresh_per_second=5 if self.is_tmux else 20,
                screen=True,
            )
            self.live_display.start()
        except Exception as e:
            self.tui_enabled = False
            self.live_display = None
            self.log(f"Failed to start TUI: {e}")

    def update_display(self, force=False):
        """Update the live display, throttled for tmux compatibility."""
        if not self.tui_enabled or not self.live_display:
            return

        current_time = time.time()
        if not force and current_time - self.last_update_time < self.update_throttle:
            return

        self.live_display.update(self.create_layout())
        self.last_update_time = current_time

    def stop_live_display(self):
        """Stop the live TUI display"""
        if self.live_display:
            try:
                self.live_display.stop()
            finally:
                self.live_display = None
                sys.stdout.write("\033[?25h")  # Show cursor
                sys.stdout.flush()


# Global TUI manager instance
tui_manager = TUIManager()
