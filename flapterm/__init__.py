#!/usr/bin/env python3
#
# FlapTerm
# Copyright (c) 2025 Martynas Jocius
#

__version__ = "0.1"
__author__ = "Martynas Jocius"
__license__ = "MIT"

VERSION = __version__

PLACEHOLDER_TEXT = "AWAITING MESSAGE..."

# Nominal cell footprint in display units (glyph plus inter-cell spacer)
CELL_WIDTH = 28
CELL_HEIGHT = 42

# Terminal cell footprint in character cells (glyph + spacer column, row + spacer line)
TERMINAL_CELL_WIDTH = 2
TERMINAL_CELL_HEIGHT = 2

FLIP_DURATION = 0.25
FLIP_JITTER = 0.0

DEFAULT_STORE_PATH = "flapterm.json"
DEFAULT_OUTBOX_PATH = "outbox.jsonl"

DEBUG_MODE = False

UI_APP_NAME = "FlapTerm"
UI_PANEL_BOARD = "Board"
UI_PANEL_LOG = "Log"
UI_UNKNOWN_USER = "Unknown User"
