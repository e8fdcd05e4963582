#!/usr/bin/env python3
#
# FlapTerm
# Copyright (c) 2025 Martynas Jocius
#
"""Shared color helpers for the FlapTerm board."""

from typing import Dict, List, Tuple

BACKGROUND, FLAP_FACE, FLAP_FACE_FLIPPING, HINGE, HEADER, GLYPH_FLIPPING, GLYPH = range(7)


def get_flap_palette() -> List[Tuple[int, int, int]]:
    """
    Get the board palette as RGB tuples.

    Ordered from the board background to the brightest glyph tone, matching
    a classic black-and-white departure board.
    """
    return [
        (0, 0, 0),           # Board background
        (26, 26, 26),        # Flap face
        (36, 36, 36),        # Flap face mid-flip
        (77, 77, 77),        # Hinge line
        (128, 128, 128),     # Header text
        (138, 138, 138),     # Glyph mid-flip
        (240, 240, 240),     # Glyph
    ]


def rgb_to_hex(color: Tuple[int, int, int]) -> str:
    """Convert an (R, G, B) tuple to a ``#rrggbb`` string usable as a rich color."""
    r, g, b = (max(0, min(255, int(v))) for v in color)
    return f"#{r:02x}{g:02x}{b:02x}"


def build_board_colors(palette: List[Tuple[int, int, int]]) -> Dict[str, str]:
    """Map a flap palette to the rich styles used for board cells and chrome."""
    tone = [rgb_to_hex(color) for color in palette]
    return {
        "text": f"bold {tone[GLYPH]} on {tone[FLAP_FACE]}",
        "flipping": f"{tone[GLYPH_FLIPPING]} on {tone[FLAP_FACE_FLIPPING]}",
        "blank": f"on {tone[FLAP_FACE]}",
        "header": tone[HEADER],
        "border": tone[HINGE],
    }


DEFAULT_BOARD_COLORS: Dict[str, str] = build_board_colors(get_flap_palette())


def cell_style(colors: Dict[str, str], flipping: bool, blank: bool) -> str:
    """Pick the rich style for one cell."""
    if blank:
        return colors.get("blank", DEFAULT_BOARD_COLORS["blank"])
    if flipping:
        return colors.get("flipping", DEFAULT_BOARD_COLORS["flipping"])
    return colors.get("text", DEFAULT_BOARD_COLORS["text"])
