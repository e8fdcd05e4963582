#!/usr/bin/env python3
#
# FlapTerm
# Copyright (c) 2025 Martynas Jocius
#
"""Utility helpers shared across FlapTerm."""

from .colors import (
    DEFAULT_BOARD_COLORS,
    build_board_colors,
    cell_style,
    get_flap_palette,
    rgb_to_hex,
)

__all__ = (
    "DEFAULT_BOARD_COLORS",
    "build_board_colors",
    "cell_style",
    "get_flap_palette",
    "rgb_to_hex",
)
