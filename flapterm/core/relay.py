#!/usr/bin/env python3
#
# FlapTerm
# Copyright (c) 2025 Martynas Jocius
#
"""Push notification relay for newly created messages."""

from __future__ import annotations

import json
import threading
import time
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Set

from watchdog.observers import Observer

from ..debug import debug_log, log_error
from ..ui.tui import tui_manager
from .messages import DisplayMessage, MessageStore, MessageStoreError, StoreFileHandler

Dispatcher = Callable[[Dict[str, Any]], Any]


def build_payload(message: DisplayMessage, token: str) -> Dict[str, Any]:
    return {
        "notification": {
            "title": f"New message from {message.sender}",
            "body": message.text,
            "sound": "default",
        },
        "token": token,
    }


class OutboxDispatcher:
    """Dispatcher that appends each push payload to a JSON-lines outbox file."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def __call__(self, payload: Dict[str, Any]) -> str:
        dispatch_id = uuid.uuid4().hex
        entry = {
            "id": dispatch_id,
            "sent_at": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
            "payload": payload,
        }
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as handle:
                handle.write(json.dumps(entry) + "\n")
        return dispatch_id


class NotificationRelay:
    """Sends at most one push notification per created message.

    Missing recipients and missing tokens are logged and skipped; dispatch
    failures are logged and never retried.
    """

    def __init__(self, store: MessageStore, dispatcher: Dispatcher) -> None:
        self.store = store
        self.dispatcher = dispatcher

    def handle_created(self, message: DisplayMessage) -> Optional[Any]:
        recipient = message.recipient
        try:
            user = self.store.get_user(recipient)
        except MessageStoreError as exc:
            tui_manager.log(f"Unable to look up recipient {recipient}: {exc}")
            return None

        if user is None:
            tui_manager.log(f"User record not found for recipient: {recipient}")
            return None

        token = user.get("fcm_token")
        if not token:
            tui_manager.log(f"Delivery token not found for user: {recipient}")
            return None

        payload = build_payload(message, str(token))
        try:
            response = self.dispatcher(payload)
        except Exception as exc:
            tui_manager.log(f"Error sending push notification to {recipient}: {exc}")
            log_error("DISPATCH", "relay", str(exc), {"message_id": message.message_id})
            return None

        tui_manager.log(f"Sent push notification to {recipient}: {response}")
        debug_log(
            "PUSH_SENT",
            "Push notification dispatched",
            {"message_id": message.message_id, "response": response},
        )
        return response


class RelayWatcher:
    """Watches the store and hands every newly created message to the relay once."""

    def __init__(self, store: MessageStore, relay: NotificationRelay) -> None:
        self.store = store
        self.relay = relay
        self.file_observer: Optional[Observer] = None
        self.seen_ids: Set[str] = set()
        self._scan_lock = threading.Lock()

    def _message_ids(self):
        messages = self.store.messages()
        return [(m.message_id or f"#{i}", m) for i, m in enumerate(messages)]

    def prime(self) -> int:
        """Mark every message already in the store as seen."""
        try:
            entries = self._message_ids()
        except MessageStoreError as exc:
            tui_manager.log(f"Relay could not read message store: {exc}")
            entries = []
        with self._scan_lock:
            self.seen_ids = {message_id for message_id, _ in entries}
        return len(self.seen_ids)

    def scan(self) -> int:
        """Relay messages not seen before. Returns how many were handled."""
        with self._scan_lock:
            try:
                entries = self._message_ids()
            except MessageStoreError as exc:
                tui_manager.log(f"Relay could not read message store: {exc}")
                return 0

            fresh = [(mid, m) for mid, m in entries if mid not in self.seen_ids]
            for message_id, _ in fresh:
                self.seen_ids.add(message_id)

        for _, message in fresh:
            self.relay.handle_created(message)
        return len(fresh)

    def start(self) -> None:
        if self.file_observer is not None:
            return
        existing = self.prime()
        watch_dir = self.store.path.parent
        watch_dir.mkdir(parents=True, exist_ok=True)
        observer = Observer()
        observer.schedule(StoreFileHandler(self.store.path, self.scan), str(watch_dir), recursive=False)
        observer.start()
        self.file_observer = observer
        tui_manager.log(f"Relay watching {self.store.path} ({existing} existing messages skipped)")

    def stop(self) -> None:
        if not self.file_observer:
            return
        self.file_observer.stop()
        self.file_observer.join()
        self.file_observer = None
