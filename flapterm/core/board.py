#!/usr/bin/env python3
#
# FlapTerm
# Copyright (c) 2025 Martynas Jocius
#
"""Grid renderer: lays out the current message and drives per-cell flips."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

import numpy as np

from .. import (
    FLIP_DURATION,
    FLIP_JITTER,
    PLACEHOLDER_TEXT,
    TERMINAL_CELL_HEIGHT,
    TERMINAL_CELL_WIDTH,
)
from ..debug import debug_log, update_state
from ..utils.colors import DEFAULT_BOARD_COLORS
from .cell import FlapCell
from .layout import Viewport, layout

if TYPE_CHECKING:  # pragma: no cover - typing helpers
    from .messages import DisplayMessage

HEADER_TIME_FORMAT = "%H:%M:%S"
HEADER_MISSING_TIME = "..."


@dataclass
class BoardConfig:
    """Tunable board settings, usually loaded from the ``board`` config section."""

    cell_width: int = TERMINAL_CELL_WIDTH
    cell_height: int = TERMINAL_CELL_HEIGHT
    flip_duration: float = FLIP_DURATION
    jitter: float = FLIP_JITTER
    placeholder: str = PLACEHOLDER_TEXT
    colors: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_BOARD_COLORS))

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "BoardConfig":
        """Create from a config dict, keeping defaults for missing keys."""
        if not config:
            return cls()
        colors = dict(DEFAULT_BOARD_COLORS)
        colors.update({str(k): str(v) for k, v in (config.get("colors") or {}).items()})
        return cls(
            cell_width=int(config.get("cell_width", TERMINAL_CELL_WIDTH)),
            cell_height=int(config.get("cell_height", TERMINAL_CELL_HEIGHT)),
            flip_duration=float(config.get("flip_duration", FLIP_DURATION)),
            jitter=float(config.get("jitter", FLIP_JITTER)),
            placeholder=str(config.get("placeholder") or PLACEHOLDER_TEXT),
            colors=colors,
        )


def format_header(message: Optional["DisplayMessage"]) -> Optional[str]:
    """Return ``SENDER | HH:MM:SS`` for a message, or None without one."""
    if message is None:
        return None
    if message.timestamp is not None:
        stamp = message.timestamp.astimezone().strftime(HEADER_TIME_FORMAT)
    else:
        stamp = HEADER_MISSING_TIME
    return f"{message.sender.upper()} | {stamp}"


class BoardRenderer:
    """Owns the cell grid for one board and keeps it in step with the current message."""

    def __init__(
        self,
        viewport: Viewport,
        config: Optional[BoardConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or BoardConfig()
        self.clock = clock
        self._rng = rng or random.Random()
        self.viewport = Viewport(max(0, viewport.columns), max(0, viewport.rows))
        self.message: Optional["DisplayMessage"] = None
        self.cells: List[List[FlapCell]] = self._build_cells(self.viewport)
        self._targets = self._blank_matrix(self.viewport)

    def _new_cell(self) -> FlapCell:
        return FlapCell(
            flip_duration=self.config.flip_duration,
            jitter=self.config.jitter,
            rng=self._rng,
        )

    def _build_cells(self, viewport: Viewport) -> List[List[FlapCell]]:
        return [
            [self._new_cell() for _ in range(viewport.columns)]
            for _ in range(viewport.rows)
        ]

    @staticmethod
    def _blank_matrix(viewport: Viewport) -> np.ndarray:
        return np.full((viewport.rows, viewport.columns), " ", dtype="<U1")

    def _grid_matrix(self, rows: List[str]) -> np.ndarray:
        """Convert laid out rows to a char matrix, clipping overlong rows at the board edge."""
        matrix = self._blank_matrix(self.viewport)
        for r, line in enumerate(rows[: self.viewport.rows]):
            clipped = line[: self.viewport.columns]
            if clipped:
                matrix[r, : len(clipped)] = list(clipped)
        return matrix

    def _apply_viewport(self, viewport: Viewport) -> bool:
        viewport = Viewport(max(0, viewport.columns), max(0, viewport.rows))
        if viewport == self.viewport:
            return False

        old_cells = self.cells
        cells = self._build_cells(viewport)
        for r in range(min(len(old_cells), viewport.rows)):
            for c in range(min(len(old_cells[r]), viewport.columns)):
                cells[r][c] = old_cells[r][c]

        targets = self._blank_matrix(viewport)
        keep_rows = min(self.viewport.rows, viewport.rows)
        keep_cols = min(self.viewport.columns, viewport.columns)
        targets[:keep_rows, :keep_cols] = self._targets[:keep_rows, :keep_cols]

        debug_log(
            "BOARD_RESIZE",
            "Board viewport changed",
            {
                "old": (self.viewport.columns, self.viewport.rows),
                "new": (viewport.columns, viewport.rows),
            },
        )
        self.viewport = viewport
        self.cells = cells
        self._targets = targets
        update_state("board", "viewport", (viewport.columns, viewport.rows))
        return True

    @property
    def text(self) -> str:
        if self.message is None:
            return ""
        return self.message.text

    @property
    def header(self) -> Optional[str]:
        return format_header(self.message)

    def layout_rows(self) -> List[str]:
        """Rows produced by the layout engine for the current message and viewport."""
        return layout(
            self.text,
            self.viewport.columns,
            self.viewport.rows,
            placeholder=self.config.placeholder,
        )

    def show(
        self,
        message: Optional["DisplayMessage"],
        viewport: Optional[Viewport] = None,
        now: Optional[float] = None,
    ) -> int:
        """
        Display ``message`` (or the placeholder when None).

        Recomputes the whole grid, diffs it against the current cell targets
        and re-targets only the cells whose character changed.

        Returns:
            Number of cells that were given a new target
        """
        now = self.clock() if now is None else now
        self.message = message
        if viewport is not None:
            self._apply_viewport(viewport)

        grid = self._grid_matrix(self.layout_rows())
        changed = np.argwhere(grid != self._targets)
        for r, c in changed:
            self.cells[r][c].set_target(grid[r, c], now)
        self._targets = grid

        debug_log(
            "BOARD_SHOW",
            "Board re-targeted",
            {"changed_cells": int(len(changed)), "has_message": message is not None},
        )
        return int(len(changed))

    def resize(self, viewport: Viewport, now: Optional[float] = None) -> int:
        """Re-lay out the current message for a new viewport."""
        if not self._apply_viewport(viewport):
            return 0
        return self.show(self.message, now=now)

    def replay(self, now: Optional[float] = None) -> int:
        """Blank every cell and flip the current grid in again."""
        for row in self.cells:
            for cell in row:
                cell.reset()
        self._targets = self._blank_matrix(self.viewport)
        return self.show(self.message, now=now)

    def tick(self, now: Optional[float] = None) -> int:
        """Advance every cell. Returns how many cells finished flipping."""
        now = self.clock() if now is None else now
        finished = 0
        for row in self.cells:
            for cell in row:
                if cell.tick(now):
                    finished += 1
        return finished

    @property
    def is_animating(self) -> bool:
        return any(cell.is_flipping for row in self.cells for cell in row)

    def cell(self, row: int, col: int) -> FlapCell:
        return self.cells[row][col]

    def target_rows(self) -> List[str]:
        return ["".join(row) for row in self._targets]

    def displayed_rows(self) -> List[str]:
        return ["".join(cell.displayed_char for cell in row) for row in self.cells]

    def snapshot(self, now: Optional[float] = None) -> List[str]:
        """Characters visible on the board right now, one string per row."""
        now = self.clock() if now is None else now
        return ["".join(cell.frame(now) for cell in row) for row in self.cells]
