#
# FlapTerm
# Copyright (c) 2025 Martynas Jocius
#
"""Test helpers for FlapTerm."""


def _silence_tui_logs():
    try:
        from flapterm.ui.tui import tui_manager
    except ImportError:
        return

    def _noop_log(*_args, **_kwargs):
        return None

    for attr in ("log", "_emit_log_event"):
        setattr(tui_manager, attr, _noop_log)


_silence_tui_logs()
