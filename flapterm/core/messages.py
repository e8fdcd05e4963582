#!/usr/bin/env python3
#
# FlapTerm
# Copyright (c) 2025 Martynas Jocius
#
"""Message records, the JSON message store and live subscriptions over it."""

from __future__ import annotations

import json
import os
import queue
import re
import tempfile
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

if TYPE_CHECKING:  # pragma: no cover - typing helpers
    from watchdog.events import FileSystemEvent

from ..debug import debug_log, log_error, update_state
from ..ui.tui import tui_manager

EMAIL_PATTERN = re.compile(
    r"[a-zA-Z0-9+._%\-]{1,256}"
    r"@"
    r"[a-zA-Z0-9][a-zA-Z0-9\-]{0,64}"
    r"(\.[a-zA-Z0-9][a-zA-Z0-9\-]{0,25})+"
)

ERROR_BLANK_RECIPIENT = "Recipient cannot be blank"
ERROR_INVALID_RECIPIENT = "Invalid recipient email format"
ERROR_BLANK_MESSAGE = "Message cannot be blank"

_UNSET = object()


class MessageStoreError(RuntimeError):
    """Raised when the message store file cannot be read or parsed."""


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Interpret a stored timestamp (datetime, epoch milliseconds or ISO-8601 text)."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class DisplayMessage:
    """A received message as shown on the board."""

    sender: str
    text: str
    timestamp: Optional[datetime] = None
    recipient: str = ""
    message_id: str = ""

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "DisplayMessage":
        return cls(
            sender=str(record.get("sender") or ""),
            text=str(record.get("text") or ""),
            timestamp=parse_timestamp(record.get("timestamp")),
            recipient=str(record.get("recipient") or ""),
            message_id=str(record.get("id") or ""),
        )

    def _sort_key(self) -> float:
        if self.timestamp is None:
            return float("-inf")
        stamp = self.timestamp
        if stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=timezone.utc)
        return stamp.timestamp()


def validate_outgoing(recipient: str, text: str) -> Optional[str]:
    """Return the first problem with an outgoing message, or None when it can be sent."""
    recipient = (recipient or "").strip()
    if not recipient:
        return ERROR_BLANK_RECIPIENT
    if not EMAIL_PATTERN.fullmatch(recipient):
        return ERROR_INVALID_RECIPIENT
    if not (text or "").strip():
        return ERROR_BLANK_MESSAGE
    return None


class MessageStore:
    """JSON document holding registered users and all sent messages.

    Layout::

        {"users": {"<email>": {"fcm_token": "..."}},
         "messages": [{"id", "sender", "recipient", "text", "timestamp"}]}
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"users": {}, "messages": []}
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                raw = handle.read()
        except OSError as exc:
            raise MessageStoreError(f"Unable to read message store {self.path}: {exc}") from exc

        if not raw.strip():
            return {"users": {}, "messages": []}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise MessageStoreError(
                f"Invalid JSON in message store {self.path} "
                f"(line {exc.lineno}, column {exc.colno}): {exc.msg}"
            ) from exc

        if not isinstance(data, dict):
            raise MessageStoreError(
                f"Message store must contain a JSON object, not {type(data).__name__}"
            )
        users = data.get("users") or {}
        messages = data.get("messages") or []
        if not isinstance(users, dict) or not isinstance(messages, list):
            raise MessageStoreError("Message store 'users' must be an object and 'messages' an array")
        return {"users": users, "messages": messages}

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2)
            os.replace(tmp_name, self.path)
        except Exception:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def load(self) -> Dict[str, Any]:
        with self._lock:
            return self._read()

    def messages(self) -> List[DisplayMessage]:
        """All well-formed messages in insertion order."""
        result = []
        for index, record in enumerate(self.load()["messages"]):
            if not isinstance(record, dict):
                tui_manager.log(f"Skipping malformed message record #{index + 1} in {self.path}")
                continue
            result.append(DisplayMessage.from_record(record))
        return result

    def latest_for(self, recipient: str) -> Optional[DisplayMessage]:
        """Newest message addressed to ``recipient`` (limit one), or None."""
        candidates = [m for m in self.messages() if m.recipient == recipient]
        if not candidates:
            return None
        # max() keeps the first of equal keys; reverse so later inserts win ties
        return max(reversed(candidates), key=DisplayMessage._sort_key)

    def add_message(self, sender: str, recipient: str, text: str) -> DisplayMessage:
        """Append a message stamped with the store's current UTC time."""
        record = {
            "id": uuid.uuid4().hex,
            "sender": sender,
            "recipient": recipient,
            "text": text,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        with self._lock:
            data = self._read()
            data["messages"].append(record)
            self._write(data)

        debug_log("MESSAGE_ADDED", "Message stored", {"id": record["id"], "recipient": recipient})
        return DisplayMessage.from_record(record)

    def register_token(self, email: str, token: str) -> None:
        with self._lock:
            data = self._read()
            user = data["users"].setdefault(email, {})
            user["fcm_token"] = token
            self._write(data)
        debug_log("TOKEN_REGISTERED", "Delivery token saved", {"user": email})

    def get_user(self, email: str) -> Optional[Dict[str, Any]]:
        user = self.load()["users"].get(email)
        return user if isinstance(user, dict) else None


def send_message(store: MessageStore, sender: str, recipient: str, text: str) -> DisplayMessage:
    """Validate and store an outgoing message. Raises ValueError when invalid."""
    problem = validate_outgoing(recipient, text)
    if problem:
        raise ValueError(problem)
    return store.add_message(sender, recipient.strip(), text)


class StoreFileHandler(FileSystemEventHandler):
    """Forward filesystem events that touch the store file to a callback."""

    def __init__(self, path: Path, callback: Callable[[], None]) -> None:
        super().__init__()
        self.path = Path(path).resolve()
        self.callback = callback

    def _touches_store(self, event: "FileSystemEvent") -> bool:
        if event.is_directory:
            return False
        candidates = [event.src_path, getattr(event, "dest_path", "")]
        return any(c and Path(c).resolve() == self.path for c in candidates)

    def on_any_event(self, event: "FileSystemEvent") -> None:
        if event.event_type not in ("created", "modified", "moved"):
            return
        if self._touches_store(event):
            self.callback()


class MessageSubscription:
    """Live feed of the current message for one recipient.

    Emits the current value on ``start()`` and afterwards whenever the
    recipient's newest message changes, including back to None. Store
    errors are logged and delivered as None. ``close()`` ends the feed;
    calling ``start()`` again resubscribes.
    """

    def __init__(
        self,
        store: MessageStore,
        recipient: str,
        on_change: Optional[Callable[[Optional[DisplayMessage]], None]] = None,
    ) -> None:
        self.store = store
        self.recipient = recipient
        self.on_change = on_change
        self.file_observer: Optional[Observer] = None
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._last: Any = _UNSET
        self._emit_lock = threading.Lock()
        self._closed = threading.Event()
        self._closed.set()

    @property
    def active(self) -> bool:
        return not self._closed.is_set()

    def _current(self) -> Optional[DisplayMessage]:
        try:
            return self.store.latest_for(self.recipient)
        except MessageStoreError as exc:
            tui_manager.log(f"Message delivery failed: {exc}")
            log_error("DELIVERY", "subscription", str(exc), {"recipient": self.recipient})
            return None

    def refresh(self) -> None:
        """Re-read the store and emit if the current message changed."""
        if not self.active:
            return
        with self._emit_lock:
            value = self._current()
            if self._last is not _UNSET and value == self._last:
                return
            self._last = value
            update_state(
                "subscription",
                "current_message",
                value.message_id if value is not None else None,
            )
            self._queue.put(value)
        if self.on_change is not None:
            self.on_change(value)

    def start(self) -> "MessageSubscription":
        if self.active:
            return self
        self._queue = queue.Queue()
        self._closed.clear()
        self._last = _UNSET
        self.refresh()

        watch_dir = self.store.path.parent
        watch_dir.mkdir(parents=True, exist_ok=True)
        observer = Observer()
        observer.schedule(
            StoreFileHandler(self.store.path, self.refresh), str(watch_dir), recursive=False
        )
        observer.start()
        self.file_observer = observer
        tui_manager.log(f"Watching messages for {self.recipient}: {self.store.path}")
        return self

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        self._queue.put(_UNSET)
        if self.file_observer is not None:
            self.file_observer.stop()
            self.file_observer.join()
            self.file_observer = None
        debug_log("SUBSCRIPTION_CLOSED", "Message subscription closed", {"recipient": self.recipient})

    def poll(self) -> List[Optional[DisplayMessage]]:
        """Drain values delivered since the last poll without blocking."""
        values = []
        while True:
            try:
                value = self._queue.get_nowait()
            except queue.Empty:
                break
            if value is not _UNSET:
                values.append(value)
        return values

    def __iter__(self) -> Iterator[Optional[DisplayMessage]]:
        while True:
            value = self._queue.get()
            if value is _UNSET:
                return
            yield value

    def __enter__(self) -> "MessageSubscription":
        return self.start()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
