#!/usr/bin/env python3
#
# FlapTerm
# Copyright (c) 2025 Martynas Jocius
#
"""Split-flap text layout: word wrapping and centering onto a fixed cell grid."""

from dataclasses import dataclass
from typing import List

from .. import CELL_HEIGHT, CELL_WIDTH, PLACEHOLDER_TEXT

SIDE_MARGIN = 2  # Columns reserved as left/right margin when wrapping

_CONTROL_WHITESPACE = str.maketrans({"\r": " ", "\n": " ", "\t": " "})


@dataclass(frozen=True)
class Viewport:
    """Available display area expressed in character cells."""

    columns: int
    rows: int

    @classmethod
    def from_area(
        cls,
        width: float,
        height: float,
        cell_width: float = CELL_WIDTH,
        cell_height: float = CELL_HEIGHT,
    ) -> "Viewport":
        """
        Derive a viewport from a display area and a fixed per-cell footprint.

        Args:
            width: Available width in display units
            height: Available height in display units
            cell_width: Width of one cell including spacing
            cell_height: Height of one cell including spacing

        Returns:
            Viewport with floored cell counts, never negative
        """
        if cell_width <= 0 or cell_height <= 0:
            return cls(0, 0)
        columns = max(0, int(width // cell_width))
        rows = max(0, int(height // cell_height))
        return cls(columns, rows)

    @property
    def is_empty(self) -> bool:
        return self.columns < 1 or self.rows < 1


def normalize_text(text, placeholder: str = PLACEHOLDER_TEXT) -> str:
    """Uppercase the text, falling back to the placeholder when it is blank."""
    if text is None:
        text = ""
    text = str(text).translate(_CONTROL_WHITESPACE)
    if not text.strip():
        text = placeholder
    return text.upper()


def wrap_words(text: str, budget: int) -> List[str]:
    """
    Greedily pack space separated words into lines no wider than ``budget``.

    Words are never split. A word that does not fit on an empty line is
    placed alone on its own line and overflows the budget.
    """
    lines: List[str] = []
    current = ""
    started = False

    for word in text.split(" "):
        if not started:
            current = word
            started = True
            continue

        needed = len(current) + 1 + len(word) if current else len(word)
        if needed <= budget:
            current = f"{current} {word}" if current else word
            continue

        closed = current.rstrip(" ")
        if closed:
            lines.append(closed)
            current = word
        else:
            current = word

    closed = current.rstrip(" ")
    if closed or not lines:
        lines.append(closed)
    return lines


def center_rows(lines: List[str], columns: int, rows: int) -> List[str]:
    """
    Truncate ``lines`` to ``rows`` and center them on a ``columns`` x ``rows`` grid.

    Args:
        lines: Wrapped content lines
        columns: Grid width in cells
        rows: Grid height in cells

    Returns:
        Exactly ``rows`` strings; blank rows are ``columns`` spaces
    """
    if columns < 1 or rows < 1:
        return []

    content = lines[:rows]
    top_pad = max(0, (rows - len(content)) // 2)
    bottom_pad = max(0, rows - len(content) - top_pad)
    blank = " " * columns

    grid = [blank] * top_pad
    for line in content:
        pad = max(0, (columns - len(line)) // 2)
        right = max(0, columns - len(line) - pad)
        grid.append(" " * pad + line + " " * right)
    grid.extend([blank] * bottom_pad)
    return grid


def layout(
    text, columns: int, rows: int, placeholder: str = PLACEHOLDER_TEXT
) -> List[str]:
    """
    Lay out a message on a split-flap grid.

    The text is uppercased, word wrapped with a two column side margin,
    truncated to the available rows and centered both ways.

    Args:
        text: Message text; ``None`` or blank text shows the placeholder
        columns: Grid width in cells
        rows: Grid height in cells
        placeholder: Text shown when there is nothing to display

    Returns:
        ``rows`` strings of ``columns`` characters, or an empty list when the
        viewport holds no cells. A single word wider than the grid keeps its
        full length on its own row.
    """
    if columns < 1 or rows < 1:
        return []

    normalized = normalize_text(text, placeholder)
    lines = wrap_words(normalized, columns - SIDE_MARGIN)
    return center_rows(lines, columns, rows)
