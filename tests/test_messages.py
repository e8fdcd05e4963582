#
# FlapTerm
# Copyright (c) 2025 Martynas Jocius
#
import json
import tempfile
import time
import unittest
from datetime import datetime, timezone
from pathlib import Path

from flapterm.core.messages import (
    ERROR_BLANK_MESSAGE,
    ERROR_BLANK_RECIPIENT,
    ERROR_INVALID_RECIPIENT,
    DisplayMessage,
    MessageStore,
    MessageStoreError,
    MessageSubscription,
    parse_timestamp,
    send_message,
    validate_outgoing,
)


class StoreTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = Path(self._tmp.name) / "store.json"
        self.store = MessageStore(self.path)

    def write_raw(self, data):
        self.path.write_text(json.dumps(data), encoding="utf-8")


class MessageStoreTests(StoreTestCase):
    def test_missing_file_reads_empty(self):
        self.assertEqual(self.store.messages(), [])
        self.assertIsNone(self.store.latest_for("amy@example.com"))

    def test_add_and_latest(self):
        self.store.add_message("bob@example.com", "amy@example.com", "first")
        second = self.store.add_message("bob@example.com", "amy@example.com", "second")
        self.store.add_message("amy@example.com", "bob@example.com", "reply")

        latest = self.store.latest_for("amy@example.com")
        self.assertEqual(latest, second)
        self.assertEqual(latest.text, "second")
        self.assertIsNotNone(latest.timestamp)
        self.assertTrue(latest.message_id)

    def test_latest_orders_by_timestamp_not_position(self):
        self.write_raw(
            {
                "messages": [
                    {"id": "2", "sender": "b", "recipient": "a", "text": "new", "timestamp": 200},
                    {"id": "1", "sender": "b", "recipient": "a", "text": "old", "timestamp": 100},
                    {"id": "0", "sender": "b", "recipient": "a", "text": "undated"},
                ]
            }
        )
        self.assertEqual(self.store.latest_for("a").text, "new")

    def test_millisecond_records_compare_with_iso_records(self):
        self.write_raw(
            {
                "messages": [
                    {"id": "n", "sender": "b", "recipient": "a", "text": "newer", "timestamp": 1714557600000},
                    {"id": "o", "sender": "b", "recipient": "a", "text": "older", "timestamp": "2024-04-01T00:00:00Z"},
                ]
            }
        )
        latest = self.store.latest_for("a")
        self.assertEqual(latest.text, "newer")
        self.assertEqual(latest.timestamp, datetime(2024, 5, 1, 10, tzinfo=timezone.utc))

    def test_malformed_records_are_skipped(self):
        self.write_raw({"messages": ["junk", {"sender": "b", "recipient": "a", "text": "ok"}]})
        self.assertEqual([m.text for m in self.store.messages()], ["ok"])

    def test_invalid_json_raises(self):
        self.path.write_text("{not json", encoding="utf-8")
        with self.assertRaises(MessageStoreError):
            self.store.load()

    def test_wrong_shape_raises(self):
        self.write_raw([1, 2, 3])
        with self.assertRaises(MessageStoreError):
            self.store.load()

    def test_register_token(self):
        self.store.register_token("amy@example.com", "tok-1")
        self.assertEqual(self.store.get_user("amy@example.com"), {"fcm_token": "tok-1"})
        self.assertIsNone(self.store.get_user("nobody@example.com"))

    def test_writes_leave_no_temp_files(self):
        self.store.add_message("a@example.com", "b@example.com", "hi")
        self.assertEqual([p.name for p in Path(self._tmp.name).iterdir()], ["store.json"])


class ValidationTests(unittest.TestCase):
    def test_blank_recipient(self):
        self.assertEqual(validate_outgoing("  ", "hi"), ERROR_BLANK_RECIPIENT)

    def test_bad_email(self):
        self.assertEqual(validate_outgoing("not-an-email", "hi"), ERROR_INVALID_RECIPIENT)
        self.assertEqual(validate_outgoing("amy@localhost", "hi"), ERROR_INVALID_RECIPIENT)

    def test_blank_message(self):
        self.assertEqual(validate_outgoing("amy@example.com", " "), ERROR_BLANK_MESSAGE)

    def test_valid(self):
        self.assertIsNone(validate_outgoing("amy.b+tag@mail.example.com", "hello"))


class SendMessageTests(StoreTestCase):
    def test_send_stores_message(self):
        message = send_message(self.store, "bob@example.com", " amy@example.com ", "hey")
        self.assertEqual(message.recipient, "amy@example.com")
        self.assertEqual(self.store.latest_for("amy@example.com").text, "hey")

    def test_send_rejects_invalid(self):
        with self.assertRaises(ValueError) as ctx:
            send_message(self.store, "bob@example.com", "amy@example.com", "")
        self.assertEqual(str(ctx.exception), ERROR_BLANK_MESSAGE)
        self.assertEqual(self.store.messages(), [])


class TimestampTests(unittest.TestCase):
    def test_epoch_milliseconds(self):
        self.assertEqual(
            parse_timestamp(0), datetime(1970, 1, 1, tzinfo=timezone.utc)
        )
        self.assertEqual(
            parse_timestamp(1714557600000),
            datetime(2024, 5, 1, 10, tzinfo=timezone.utc),
        )
        self.assertEqual(
            parse_timestamp(1714557600500.0),
            datetime(2024, 5, 1, 10, 0, 0, 500000, tzinfo=timezone.utc),
        )

    def test_iso_with_z(self):
        self.assertEqual(
            parse_timestamp("2024-05-01T10:00:00Z"),
            datetime(2024, 5, 1, 10, tzinfo=timezone.utc),
        )

    def test_unknown_types(self):
        self.assertIsNone(parse_timestamp(None))
        self.assertIsNone(parse_timestamp(True))
        self.assertIsNone(parse_timestamp("yesterday"))
        self.assertIsNone(parse_timestamp({"seconds": 1}))

    def test_from_record_defaults(self):
        message = DisplayMessage.from_record({})
        self.assertEqual(message, DisplayMessage(sender="", text=""))


class SubscriptionTests(StoreTestCase):
    def setUp(self):
        super().setUp()
        self.received = []
        self.subscription = MessageSubscription(
            self.store, "amy@example.com", on_change=self.received.append
        )
        self.addCleanup(self.subscription.close)

    def test_start_emits_current_value(self):
        self.subscription.start()
        self.assertEqual(self.subscription.poll(), [None])
        self.assertEqual(self.received, [None])

    def test_refresh_emits_only_on_change(self):
        self.subscription.start()
        self.subscription.poll()

        message = self.store.add_message("bob@example.com", "amy@example.com", "hi")
        self.subscription.refresh()
        self.subscription.refresh()
        values = self.subscription.poll()
        # The file observer may have delivered the change first; either way once
        self.assertEqual(values, [message])

    def test_store_write_reaches_subscriber_through_observer(self):
        self.subscription.start()
        self.assertEqual(self.subscription.poll(), [None])

        message = self.store.add_message("bob@example.com", "amy@example.com", "hi")

        delivered = []
        deadline = time.monotonic() + 5.0
        while not delivered and time.monotonic() < deadline:
            delivered.extend(self.subscription.poll())
            time.sleep(0.05)
        self.assertEqual(delivered, [message])
        self.assertEqual(self.received[-1], message)

    def test_other_recipients_do_not_emit(self):
        self.subscription.start()
        self.subscription.poll()
        self.store.add_message("bob@example.com", "carl@example.com", "not yours")
        self.subscription.refresh()
        self.assertEqual(self.subscription.poll(), [])

    def test_store_error_surfaces_as_none(self):
        self.store.add_message("bob@example.com", "amy@example.com", "hi")
        self.subscription.start()
        self.assertEqual(len(self.subscription.poll()), 1)

        self.path.write_text("{broken", encoding="utf-8")
        self.subscription.refresh()
        self.assertEqual(self.subscription.poll(), [None])

    def test_close_ends_iteration_and_restart_resubscribes(self):
        self.subscription.start()
        self.subscription.close()
        self.assertFalse(self.subscription.active)
        self.assertEqual(list(self.subscription), [None])

        self.subscription.start()
        self.assertTrue(self.subscription.active)
        self.assertEqual(self.subscription.poll(), [None])

    def test_context_manager(self):
        with MessageSubscription(self.store, "amy@example.com") as subscription:
            self.assertTrue(subscription.active)
        self.assertFalse(subscription.active)


if __name__ == "__main__":
    unittest.main()
