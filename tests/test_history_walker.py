"""Tests for HistoryCursor ordering and the history delta walker."""

import asyncio
import unittest

from support import gmail_message

from mailsync.errors import HistoryExpiredError
from mailsync.mail_provider.gmail_mock import GmailMockProvider
from mailsync.models.cursor import HistoryCursor
from mailsync.sync.history import HistoryWalker


def _added(record_id: str, *message_ids: str) -> dict:
    return {
        "id": record_id,
        "messagesAdded": [{"message": {"id": mid, "threadId": f"t-{mid}"}} for mid in message_ids],
    }


async def _collect(walk) -> list[str]:
    return [event.message_id async for event in walk.events()]


class TestHistoryCursor(unittest.TestCase):
    def test_numeric_values_order_numerically(self):
        self.assertLess(HistoryCursor("99"), HistoryCursor("100"))
        self.assertGreater(HistoryCursor("1000"), HistoryCursor("999"))
        self.assertEqual(HistoryCursor("42"), HistoryCursor("42"))

    def test_prefixed_values_order_by_number(self):
        self.assertLess(HistoryCursor("H100"), HistoryCursor("H105"))
        self.assertLess(HistoryCursor("H99"), HistoryCursor("H100"))
        self.assertGreater(HistoryCursor("H1000"), HistoryCursor("H999"))
        self.assertLess(HistoryCursor("A9"), HistoryCursor("B1"))

    def test_mixed_values_order_consistently(self):
        values = [HistoryCursor(v) for v in ("9", "10", "1a")]
        ordered = sorted(values)
        self.assertEqual([str(c) for c in ordered], ["1a", "9", "10"])
        for a in values:
            for b in values:
                self.assertEqual(a < b, not (a == b or b < a))

    def test_parse(self):
        self.assertIsNone(HistoryCursor.parse(None))
        self.assertIsNone(HistoryCursor.parse("  "))
        self.assertEqual(HistoryCursor.parse(" 12 "), HistoryCursor("12"))
        self.assertEqual(str(HistoryCursor("12")), "12")

    def test_blank_rejected(self):
        with self.assertRaises(ValueError):
            HistoryCursor("")


class TestHistoryWalker(unittest.TestCase):
    def test_bootstrap_reads_profile_before_listing(self):
        provider = GmailMockProvider(
            {
                "profile": {"emailAddress": "me@example.com", "historyId": "100"},
                "messages": [gmail_message(f"m{i}", "t1") for i in range(15)],
            }
        )
        result = asyncio.run(HistoryWalker(provider).bootstrap(10))
        self.assertEqual(result.cursor, HistoryCursor("100"))
        self.assertEqual(len(result.events), 10)
        self.assertEqual(provider.calls[:2], ["get_profile", "list_recent_messages"])

    def test_incremental_follows_pages_and_tracks_max_cursor(self):
        provider = GmailMockProvider(
            {
                "profile": {"historyId": "120"},
                "history": [_added("101", "a"), _added("105", "b", "c"), _added("110")],
            },
            page_size=1,
        )
        walk = HistoryWalker(provider).incremental(HistoryCursor("100"))
        ids = asyncio.run(_collect(walk))
        self.assertEqual(ids, ["a", "b", "c"])
        self.assertEqual(walk.pages, 3)
        self.assertTrue(walk.completed)
        # page historyId (120) is higher than any record id
        self.assertEqual(walk.cursor, HistoryCursor("120"))

    def test_duplicate_events_yielded_once(self):
        provider = GmailMockProvider(
            {"profile": {"historyId": "103"}, "history": [_added("101", "a", "b"), _added("102", "a")]}
        )
        walk = HistoryWalker(provider).incremental(HistoryCursor("100"))
        self.assertEqual(asyncio.run(_collect(walk)), ["a", "b"])

    def test_empty_feed_keeps_start_cursor(self):
        provider = GmailMockProvider({"profile": {"historyId": "90"}})
        walk = HistoryWalker(provider).incremental(HistoryCursor("100"))
        self.assertEqual(asyncio.run(_collect(walk)), [])
        self.assertEqual(walk.cursor, HistoryCursor("100"))
        self.assertEqual(walk.pages, 1)

    def test_only_records_after_start_are_returned(self):
        provider = GmailMockProvider(
            {"profile": {"historyId": "105"}, "history": [_added("99", "old"), _added("105", "new")]}
        )
        walk = HistoryWalker(provider).incremental(HistoryCursor("100"))
        self.assertEqual(asyncio.run(_collect(walk)), ["new"])

    def test_expired_cursor_raises(self):
        provider = GmailMockProvider({"profile": {"historyId": "500"}, "min_history_id": "200"})
        walk = HistoryWalker(provider).incremental(HistoryCursor("100"))
        with self.assertRaises(HistoryExpiredError):
            asyncio.run(_collect(walk))
        self.assertFalse(walk.completed)


if __name__ == "__main__":
    unittest.main()
