#!/usr/bin/env python3
#
# FlapTerm
# Copyright (c) 2025 Martynas Jocius
#
"""Structured debug event tracking for FlapTerm."""

import time
from typing import Any, Dict, Iterable, List, Optional

MAX_DEBUG_EVENTS = 500


class DebugManager:
    """Records debug events and component state for the board, feed and relay."""

    def __init__(self):
        self.enabled = False
        self.start_time = time.time()
        self.events: List[Dict[str, Any]] = []
        self.current_state: Dict[str, Dict[str, Any]] = {}

    def enable(self):
        self.enabled = True
        self.debug_log("DEBUG_MODE_ENABLED", "Debug mode activated")

    def disable(self):
        if self.enabled:
            self.debug_log("DEBUG_MODE_DISABLED", "Debug mode deactivated")
        self.enabled = False

    def _runtime(self) -> float:
        return time.time() - self.start_time

    def _emit(self, lines: Iterable[str]) -> None:
        """Route debug lines to the TUI log when it is live, stdout otherwise."""
        prefix = f"[DEBUG:{self._runtime():7.3f}s]"
        try:
            from ..ui.tui import tui_manager
        except ImportError:
            tui_manager = None

        if tui_manager is not None and tui_manager.tui_enabled:
            for line in lines:
                tui_manager.log(f"{prefix} {line}")
        else:
            for line in lines:
                print(f"{prefix} {line}")

    def debug_log(self, event_type: str, message: str, data: Optional[Dict[str, Any]] = None):
        """Record an event and echo it with its data fields."""
        if not self.enabled:
            return

        entry = {
            "timestamp": time.time(),
            "runtime_seconds": round(self._runtime(), 3),
            "event_type": event_type,
            "message": message,
        }
        if data:
            entry["data"] = data

        self.events.append(entry)
        if len(self.events) > MAX_DEBUG_EVENTS:
            del self.events[: len(self.events) - MAX_DEBUG_EVENTS]

        lines = [f"{event_type}: {message}"]
        if data:
            lines.extend(f"  {key}: {value}" for key, value in data.items())
        self._emit(lines)

    def update_state(self, component: str, key: str, value: Any, description: str = ""):
        """Update tracked component state and log the transition."""
        if not self.enabled:
            return

        component_state = self.current_state.setdefault(component, {})
        old_value = component_state.get(key)
        component_state[key] = value

        change_desc = f"{description} " if description else ""
        self.debug_log(
            "STATE_CHANGE",
            f"{change_desc}{component}.{key}: {old_value} -> {value}",
            {"component": component, "key": key, "old_value": old_value, "new_value": value},
        )

    def log_error(self, error_type: str, component: str, error_msg: str, details: Optional[Dict[str, Any]] = None):
        if not self.enabled:
            return
        error_data = {"component": component, "error_message": error_msg}
        if details:
            error_data.update(details)
        self.debug_log("ERROR", f"{component}: {error_type} - {error_msg}", error_data)

    def get_current_state(self) -> Dict[str, Any]:
        """Snapshot of tracked state."""
        return {
            "runtime_seconds": round(self._runtime(), 3),
            "debug_enabled": self.enabled,
            "state": {name: dict(values) for name, values in self.current_state.items()},
            "total_events": len(self.events),
        }

    def print_state_summary(self):
        if not self.enabled:
            return

        state = self.get_current_state()
        lines = [
            "=== STATE SUMMARY ===",
            f"Runtime: {state['runtime_seconds']}s",
            f"Total events: {state['total_events']}",
        ]
        for component, component_state in state["state"].items():
            lines.append(f"{component}:")
            lines.extend(f"  {key}: {value}" for key, value in component_state.items())
        lines.append("=== END STATE SUMMARY ===")
        self._emit(lines)


debug_manager = DebugManager()


def set_debug_mode(enabled: bool):
    if enabled:
        debug_manager.enable()
    else:
        debug_manager.disable()

