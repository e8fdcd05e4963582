#!/usr/bin/env python3
#
# FlapTerm
# Copyright (c) 2025 Martynas Jocius
#
"""Debug switch for FlapTerm.

Debug events are recorded only while the switch is on. It starts from the
``FLAPTERM_DEBUG`` environment variable and ``--debug`` turns it on.
"""

import os

from .utils import debug as _debug

debug_manager = _debug.debug_manager


def _env_flag(name):
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def set_debug_mode(enabled):
    _debug.set_debug_mode(bool(enabled))


def debug_log(event_type, message, data=None):
    if debug_manager.enabled:
        debug_manager.debug_log(event_type, message, data)


def update_state(component, key, value, description=""):
    if debug_manager.enabled:
        debug_manager.update_state(component, key, value, description)


def log_error(error_type, component, error_msg, details=None):
    if debug_manager.enabled:
        debug_manager.log_error(error_type, component, error_msg, details)


set_debug_mode(_env_flag("FLAPTERM_DEBUG"))

__all__ = ["debug_log", "update_state", "log_error", "debug_manager", "set_debug_mode"]
