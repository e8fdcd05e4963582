#!/usr/bin/env python3
#
# FlapTerm
# Copyright (c) 2025 Martynas Jocius
#
"""Single split-flap cell animation state."""

import random
import time
from enum import Enum
from typing import Optional

from .. import FLIP_DURATION


class FlapPhase(Enum):
    IDLE = "Idle"
    FLIPPING = "Flipping"


def _as_cell_char(char) -> str:
    if not char:
        return " "
    return str(char)[0]


class FlapCell:
    """One character cell flipping from its displayed char to a target char.

    Each cell holds exactly one pending target. Setting a new target while a
    flip is running restarts the flip toward the newest target.
    """

    def __init__(
        self,
        char: str = " ",
        flip_duration: float = FLIP_DURATION,
        jitter: float = 0.0,
        rng: Optional[random.Random] = None,
    ):
        self.displayed_char = _as_cell_char(char)
        self.target_char = self.displayed_char
        self.phase = FlapPhase.IDLE
        self.flip_duration = max(0.0, float(flip_duration))
        self.jitter = max(0.0, float(jitter))
        self._rng = rng or random
        self._flip_start = 0.0

    @property
    def is_flipping(self) -> bool:
        return self.phase is FlapPhase.FLIPPING

    def set_target(self, char, now: Optional[float] = None) -> bool:
        """Point the cell at ``char``. Returns True when a flip was (re)started."""
        char = _as_cell_char(char)
        now = time.monotonic() if now is None else now

        if char == self.displayed_char:
            # Re-targeting back to what is showing cancels any running flip
            self.target_char = char
            self.phase = FlapPhase.IDLE
            return False

        if self.is_flipping and char == self.target_char:
            return False

        self.target_char = char
        self.phase = FlapPhase.FLIPPING
        delay = self._rng.uniform(0.0, self.jitter) if self.jitter else 0.0
        self._flip_start = now + delay
        return True

    def progress(self, now: Optional[float] = None) -> float:
        """Fraction of the current flip completed, 1.0 when idle."""
        if not self.is_flipping:
            return 1.0
        now = time.monotonic() if now is None else now
        if self.flip_duration <= 0:
            return 1.0 if now >= self._flip_start else 0.0
        elapsed = now - self._flip_start
        return min(1.0, max(0.0, elapsed / self.flip_duration))

    def tick(self, now: Optional[float] = None) -> bool:
        """Finish the flip once its duration elapsed. Returns True when the displayed char changed."""
        if not self.is_flipping:
            return False
        now = time.monotonic() if now is None else now
        if now < self._flip_start + self.flip_duration:
            return False
        self.displayed_char = self.target_char
        self.phase = FlapPhase.IDLE
        return True

    def frame(self, now: Optional[float] = None) -> str:
        """Character visible right now: old char for the first half of a flip, target after."""
        if not self.is_flipping:
            return self.displayed_char
        if self.progress(now) < 0.5:
            return self.displayed_char
        return self.target_char

    def glyph(self, now: Optional[float] = None) -> str:
        """Visible glyph, with a space drawn as an empty cell."""
        char = self.frame(now)
        return "" if char == " " else char

    def reset(self, char: str = " ") -> None:
        self.displayed_char = _as_cell_char(char)
        self.target_char = self.displayed_char
        self.phase = FlapPhase.IDLE

    def __repr__(self) -> str:
        return (
            f"FlapCell(displayed={self.displayed_char!r}, "
            f"target={self.target_char!r}, phase={self.phase.value})"
        )
