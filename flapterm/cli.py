#!/usr/bin/env python3
#
# FlapTerm
# Copyright (c) 2025 Martynas Jocius
#

import argparse
import atexit
import json
import signal
import sys
import threading
import time
from pathlib import Path

from flapterm import DEFAULT_OUTBOX_PATH, DEFAULT_STORE_PATH, UI_PANEL_LOG, VERSION
from flapterm.core.board import BoardConfig, BoardRenderer
from flapterm.core.layout import Viewport
from flapterm.core.messages import (
    MessageStore,
    MessageStoreError,
    MessageSubscription,
    send_message,
)
from flapterm.core.relay import NotificationRelay, OutboxDispatcher, RelayWatcher
from flapterm.debug import debug_log, debug_manager, set_debug_mode
from flapterm.ui.tui import format_board_plain, tui_manager

__all__ = [
    "handle_key",
    "setup_input_handler",
    "restore_terminal_settings",
    "validate_config_file",
    "run_board",
    "run_relay",
    "main",
]

PLAIN_VIEWPORT = Viewport(columns=24, rows=6)
LOOP_INTERVAL = 0.05

_NUMERIC_BOARD_KEYS = {
    "cell_width": (1, 8),
    "cell_height": (1, 8),
    "flip_duration": (0.0, 10.0),
    "jitter": (0.0, 10.0),
}


def handle_key(char, quit_requested, replay_requested):
    """Apply one keypress. Returns True when the input loop should stop.

    Board changes are only requested here; the board loop applies them.
    """
    key = char.lower()
    if key == "c":
        tui_manager.toggle_log_panel()
    elif key == "r":
        replay_requested.set()
    elif char == "?":
        tui_manager.toggle_help_dialog()
    elif ord(char) == 27:
        tui_manager.hide_help_dialog()
    elif key == "q":
        if tui_manager.help_dialog_visible:
            tui_manager.hide_help_dialog()
        else:
            tui_manager.set_quitting(True)
            tui_manager.log("Quit requested by user (q)")
            quit_requested.set()
            return True
    elif ord(char) == 3:
        tui_manager.set_quitting(True)
        quit_requested.set()
        return True
    return False


def setup_input_handler(quit_requested, replay_requested):
    """Set up keyboard input handler for TUI mode."""
    try:
        import termios
        import tty
    except ImportError as e:
        tui_manager.log(f"Input handler disabled; terminal control unavailable: {e}")
        return None, None

    try:
        original_settings = termios.tcgetattr(sys.stdin)
    except (OSError, termios.error) as e:
        tui_manager.log(f"Input handler disabled; not a terminal: {e}")
        tui_manager.log("Use Ctrl+C to quit")
        return None, None

    def input_handler():
        tty.setcbreak(sys.stdin.fileno())
        while not quit_requested.is_set():
            char = sys.stdin.read(1)
            if not char:
                break
            if handle_key(char, quit_requested, replay_requested):
                break

    input_thread = threading.Thread(target=input_handler, daemon=True)
    input_thread.start()
    tui_manager.log(
        f"Input handler active. Shortcuts: q=quit, c=toggle {UI_PANEL_LOG}, r=replay, ?=help"
    )
    return original_settings, input_thread


def restore_terminal_settings(original_settings):
    """Simple terminal restoration"""
    if original_settings is None:
        return
    import termios

    try:
        termios.tcsetattr(sys.stdin, termios.TCSADRAIN, original_settings)
    except (OSError, termios.error):
        pass


def validate_config_file(config_file):
    """Validate a board config file. Returns (ok, info) and prints any problem."""
    config_path = Path(config_file)

    if not config_path.exists():
        print(f"Error: Config file not found: {config_file}")
        return False, None

    if not config_path.is_file():
        print(f"Error: Path is not a file: {config_file}")
        return False, None

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config_data = json.load(f)
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON in config file: {config_file}")
        print(f"   JSON error at line {e.lineno}, column {e.colno}: {e.msg}")
        return False, None
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: Unable to read config file: {config_file}")
        print(f"   {e}")
        return False, None

    if not isinstance(config_data, dict):
        print(
            f"Error: Config file must contain a JSON object, not {type(config_data).__name__}: {config_file}"
        )
        return False, None

    board = config_data.get("board", {})
    if not isinstance(board, dict):
        print(f"Error: 'board' field must be an object: {config_file}")
        return False, None

    for key, (low, high) in _NUMERIC_BOARD_KEYS.items():
        if key not in board:
            continue
        value = board[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            print(f"Error: 'board.{key}' must be a number: {config_file}")
            return False, None
        if not low <= value <= high:
            print(f"Error: 'board.{key}' must be between {low} and {high}: {config_file}")
            return False, None
        if key in ("cell_width", "cell_height") and int(value) != value:
            print(f"Error: 'board.{key}' must be a whole number: {config_file}")
            return False, None

    if "placeholder" in board and not isinstance(board["placeholder"], str):
        print(f"Error: 'board.placeholder' must be a string: {config_file}")
        return False, None

    colors = board.get("colors", {})
    if not isinstance(colors, dict) or not all(isinstance(v, str) for v in colors.values()):
        print(f"Error: 'board.colors' must map names to style strings: {config_file}")
        return False, None

    return True, {"board": BoardConfig.from_config(board), "data": config_data}


def _load_board_config(args):
    if not args.config:
        return BoardConfig()
    print(f"Validating config file: {args.config}")
    ok, info = validate_config_file(args.config)
    if not ok:
        return None
    return info["board"]


def render_once(store, user, config):
    """Print the current board for ``user`` and return an exit code."""
    renderer = BoardRenderer(PLAIN_VIEWPORT, config)
    try:
        message = store.latest_for(user)
    except MessageStoreError as exc:
        tui_manager.log(f"Message delivery failed: {exc}")
        message = None
    renderer.show(message)
    renderer.tick(renderer.clock() + config.flip_duration + config.jitter)
    print(format_board_plain(renderer))
    return 0


def run_relay(store, outbox_path):
    """Relay push notifications for new messages until interrupted."""
    relay = NotificationRelay(store, OutboxDispatcher(outbox_path))
    watcher = RelayWatcher(store, relay)
    watcher.start()
    try:
        while True:
            time.sleep(0.5)
    except KeyboardInterrupt:
        tui_manager.log("Relay interrupted by user (Ctrl+C)")
    finally:
        watcher.stop()
    return 0


def run_board(store, user, config, enable_tui=True):
    """Show the live board for ``user`` until quit."""
    renderer = BoardRenderer(PLAIN_VIEWPORT, config)
    tui_manager.attach_board(renderer, user)
    subscription = MessageSubscription(store, user)
    quit_requested = threading.Event()
    replay_requested = threading.Event()
    original_terminal_settings = None

    if enable_tui:
        tui_manager.enable_tui()
        tui_manager.start_live_display()
        enable_tui = tui_manager.tui_enabled

    try:
        if enable_tui:
            original_terminal_settings, _ = setup_input_handler(
                quit_requested, replay_requested
            )
            renderer.show(None, viewport=tui_manager.board_viewport())

        subscription.start()
        try:
            while not quit_requested.is_set():
                if replay_requested.is_set():
                    replay_requested.clear()
                    tui_manager.replay_board()

                for message in subscription.poll():
                    renderer.show(message)
                    if message is not None:
                        tui_manager.log(f"Message from {message.sender}")
                    if not enable_tui:
                        renderer.tick(renderer.clock() + config.flip_duration + config.jitter)
                        print(format_board_plain(renderer), flush=True)

                if enable_tui:
                    tui_manager.sync_board()
                    tui_manager.update_display()
                time.sleep(LOOP_INTERVAL)
        except KeyboardInterrupt:
            tui_manager.set_quitting(True)
            tui_manager.log("Interrupted by user (Ctrl+C)")
    finally:
        subscription.close()
        restore_terminal_settings(original_terminal_settings)
        tui_manager.stop_live_display()
        tui_manager.disable_tui()
    return 0


def main():
    """Main entry point for FlapTerm."""
    parser = argparse.ArgumentParser(
        description="FlapTerm - Split-flap message board for the terminal",
        epilog=f"FlapTerm v{VERSION}",
    )
    parser.add_argument(
        "--user", help="Email address identifying you (board recipient / message sender)"
    )
    parser.add_argument(
        "--store",
        default=DEFAULT_STORE_PATH,
        help=f"Path to the message store JSON file (default: {DEFAULT_STORE_PATH})",
    )
    parser.add_argument("--config", help="Path to a board config JSON file")
    parser.add_argument(
        "--send",
        nargs=2,
        metavar=("RECIPIENT", "TEXT"),
        help="Send a message to RECIPIENT and exit",
    )
    parser.add_argument(
        "--register-token", metavar="TOKEN", help="Store a push delivery token for --user"
    )
    parser.add_argument(
        "--relay", action="store_true", help="Run the push notification relay"
    )
    parser.add_argument(
        "--outbox",
        default=DEFAULT_OUTBOX_PATH,
        help=f"Relay outbox file (default: {DEFAULT_OUTBOX_PATH})",
    )
    parser.add_argument(
        "--once", action="store_true", help="Print the current board once and exit"
    )
    parser.add_argument(
        "--no-tui",
        action="store_true",
        help="Disable Terminal User Interface (TUI is enabled by default)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode with detailed state information",
    )
    parser.add_argument(
        "--disable-logging",
        action="store_true",
        help="Disable per-session log file writes (logs directory)",
    )
    parser.add_argument("--version", action="version", version=f"FlapTerm {VERSION}")

    args = parser.parse_args()

    if args.debug:
        set_debug_mode(True)
        debug_log(
            "STARTUP",
            "FlapTerm starting with debug mode enabled",
            {"store": args.store, "user": args.user, "version": VERSION},
        )

    store = MessageStore(args.store)

    if args.relay:
        return run_relay(store, args.outbox)

    if not args.user:
        print("Error: --user is required")
        return 1

    if args.register_token:
        try:
            store.register_token(args.user, args.register_token)
        except MessageStoreError as exc:
            print(f"Error: {exc}")
            return 1
        print(f"Delivery token saved for {args.user}")
        return 0

    if args.send:
        recipient, text = args.send
        try:
            message = send_message(store, args.user, recipient, text)
        except ValueError as exc:
            print(f"Error: {exc}")
            return 1
        except MessageStoreError as exc:
            print(f"Error: {exc}")
            return 1
        print(f"Message sent to {message.recipient}")
        return 0

    config = _load_board_config(args)
    if config is None:
        print("\nFlapTerm startup cancelled due to configuration errors.")
        return 1

    if args.once:
        return render_once(store, args.user, config)

    if not args.disable_logging:
        try:
            logs_dir = Path("logs")
            logs_dir.mkdir(parents=True, exist_ok=True)
            safe_user = "".join(ch if ch.isalnum() else "_" for ch in args.user)
            log_file_path = logs_dir / f"{safe_user}-{time.strftime('%Y%m%d-%H%M%S')}.log"
            tui_manager.start_file_logging(log_file_path)
            tui_manager.log(f"Session log: {log_file_path}")
        except OSError as exc:
            print(f"Warning: could not initialize file logging ({exc})")

    def cleanup(signum=None, frame=None):
        tui_manager.stop_live_display()
        tui_manager.stop_file_logging()
        if signum:
            print(f"\nReceived signal {signum}, exiting...")
            sys.exit(0)

    atexit.register(cleanup)
    signal.signal(signal.SIGTERM, cleanup)

    enable_tui = not args.no_tui
    if enable_tui and (not sys.stdin.isatty() or not sys.stdout.isatty()):
        print("Non-interactive terminal detected; disabling TUI")
        enable_tui = False

    try:
        return run_board(store, args.user, config, enable_tui=enable_tui)
    except Exception as e:
        tui_manager.log(f"Error: {e}")
        return 1
    finally:
        if args.debug:
            debug_log("SHUTDOWN", "FlapTerm shutting down")
            debug_manager.print_state_summary()
        tui_manager.stop_file_logging()


if __name__ == "__main__":
    sys.exit(main())
