#!/usr/bin/env python3
#
# FlapTerm
# Copyright (c) 2025 Martynas Jocius
#
"""Core board engine exports for FlapTerm."""

import importlib
from typing import Any

_EXPORTS = {
    "Viewport": "flapterm.core.layout",
    "FlapCell": "flapterm.core.cell",
    "FlapPhase": "flapterm.core.cell",
    "BoardConfig": "flapterm.core.board",
    "BoardRenderer": "flapterm.core.board",
    "DisplayMessage": "flapterm.core.messages",
    "MessageStore": "flapterm.core.messages",
    "MessageSubscription": "flapterm.core.messages",
    "NotificationRelay": "flapterm.core.relay",
}

__all__ = list(_EXPORTS)


def __getattr__(name: str) -> Any:
    if name in _EXPORTS:
        module = importlib.import_module(_EXPORTS[name])
        value = getattr(module, name)
        globals()[name] = value
        return value
    raise AttributeError(f"module 'flapterm.core' has no attribute {name!r}")
