"""Tests for SyncOrchestrator: first sync, steady state, crash safety, re-bootstrap, failure boundary."""

import asyncio
import unittest
from typing import Optional
from unittest import mock

from support import DatabaseTestCase, gmail_message, make_vault

from mailsync.db.repositories.account_repo import complete_sync, get_account, link_account
from mailsync.db.repositories.message_repo import count_messages, count_threads, ingest_message
from mailsync.errors import PersistenceError, UpstreamAuthError, UpstreamUnavailableError
from mailsync.mail_provider.gmail_mock import GmailMockProvider, StaticTokenSource
from mailsync.mail_provider.gmail_models import GmailHistoryRecord, GmailMessage
from mailsync.models.cursor import HistoryCursor
from mailsync.sync.orchestrator import SyncOrchestrator

BASE_MS = 1_700_000_000_000


def first_sync_mailbox() -> dict:
    """Three recent messages across two threads, provider cursor H100."""
    return {
        "profile": {"emailAddress": "me@example.com", "historyId": "H100"},
        "messages": [
            gmail_message("m3", "tB", subject="Second thread", internal_ms=BASE_MS + 3000),
            gmail_message("m2", "tA", subject="Re: First thread", internal_ms=BASE_MS + 2000),
            gmail_message("m1", "tA", subject="First thread", internal_ms=BASE_MS + 1000),
        ],
    }


class FlakyMockProvider(GmailMockProvider):
    """Mock mailbox whose get_message fails for one id."""

    def __init__(self, mailbox: dict, fail_on: str, error: Exception):
        super().__init__(mailbox)
        self.fail_on = fail_on
        self.error = error

    async def get_message(self, message_id: str):
        if message_id == self.fail_on:
            raise self.error
        return await super().get_message(message_id)


class TestSyncOrchestrator(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        link_account("t1", "u1", "me@example.com", make_vault().seal("rt-1"))
        self.tokens = StaticTokenSource()
        self.provider = GmailMockProvider(first_sync_mailbox())

    def _orchestrator(self, provider: Optional[GmailMockProvider] = None) -> SyncOrchestrator:
        provider = provider or self.provider
        return SyncOrchestrator(self.tokens, lambda token, account: provider, bootstrap_window=10)

    def _sync(self, provider: Optional[GmailMockProvider] = None):
        return asyncio.run(self._orchestrator(provider).sync_account("t1", "u1"))

    def test_first_sync_bootstraps(self):
        result = self._sync()
        self.assertEqual(result.mode, "bootstrap")
        self.assertIsNone(result.cursor_before)
        self.assertEqual(result.cursor_after, "H100")
        self.assertEqual(result.messages_inserted, 3)
        self.assertEqual(count_threads("t1"), 2)
        self.assertEqual(count_messages("t1"), 3)
        account = get_account("t1", "u1")
        self.assertEqual(account.cursor, "H100")
        self.assertIsNotNone(account.last_synced_at)

    def test_steady_state_incremental(self):
        self._sync()
        self.provider.add_message(gmail_message("m4", "tA", internal_ms=BASE_MS + 4000), "H103")
        self.provider.add_message(gmail_message("m5", "tC", internal_ms=BASE_MS + 5000), "H105")

        result = self._sync()
        self.assertEqual(result.mode, "incremental")
        self.assertEqual(result.cursor_before, "H100")
        self.assertEqual(result.cursor_after, "H105")
        self.assertEqual(result.pages, 1)
        self.assertEqual(result.messages_inserted, 2)
        self.assertEqual(count_messages("t1"), 5)
        self.assertEqual(count_threads("t1"), 3)

    def test_repeat_run_is_idempotent(self):
        self._sync()
        self.provider.add_message(gmail_message("m4", "tA", internal_ms=BASE_MS + 4000), "H103")
        # replay the same change twice in the feed
        self.provider.history.append(self.provider.history[-1].model_copy())
        result = self._sync()
        self.assertEqual(result.messages_inserted, 1)
        self.assertEqual(count_messages("t1"), 4)

    def test_crash_before_cursor_write_replays_safely(self):
        with mock.patch(
            "mailsync.sync.orchestrator.complete_sync",
            side_effect=PersistenceError("connection lost"),
        ):
            with self.assertRaises(PersistenceError):
                self._sync()
        self.assertEqual(count_messages("t1"), 3)
        self.assertIsNone(get_account("t1", "u1").cursor)

        result = self._sync()
        self.assertEqual(result.messages_inserted, 0)
        self.assertEqual(count_messages("t1"), 3)
        self.assertEqual(get_account("t1", "u1").cursor, "H100")

    def test_failure_mid_walk_leaves_cursor_untouched(self):
        self._sync()
        self.provider.add_message(gmail_message("m4", "tA", internal_ms=BASE_MS + 4000), "H103")
        self.provider.add_message(gmail_message("m5", "tA", internal_ms=BASE_MS + 5000), "H105")
        flaky = FlakyMockProvider({}, fail_on="m5", error=UpstreamUnavailableError("down", status=503))
        flaky.profile, flaky.messages, flaky.history = self.provider.profile, self.provider.messages, self.provider.history

        with self.assertRaises(UpstreamUnavailableError):
            self._sync(flaky)
        account = get_account("t1", "u1")
        self.assertEqual(account.cursor, "H100")
        self.assertEqual(count_messages("t1"), 4)

        result = self._sync()
        self.assertEqual(result.cursor_after, "H105")
        self.assertEqual(count_messages("t1"), 5)

    def test_storage_failure_mid_walk_leaves_cursor_untouched(self):
        self._sync()
        self.provider.add_message(gmail_message("m4", "tA", internal_ms=BASE_MS + 4000), "H103")
        self.provider.add_message(gmail_message("m5", "tA", internal_ms=BASE_MS + 5000), "H105")

        def failing_ingest(tenant_id, account_email, message):
            if message.provider_message_id == "m5":
                raise PersistenceError("Failed to ingest message m5: database is locked")
            return ingest_message(tenant_id, account_email, message)

        with mock.patch("mailsync.sync.orchestrator.ingest_message", side_effect=failing_ingest):
            with self.assertRaises(PersistenceError):
                self._sync()
        self.assertEqual(get_account("t1", "u1").cursor, "H100")
        self.assertEqual(count_messages("t1"), 4)

        result = self._sync()
        self.assertEqual(result.cursor_after, "H105")
        self.assertEqual(result.messages_inserted, 1)
        self.assertEqual(count_messages("t1"), 5)

    def test_cursor_never_regresses(self):
        self._sync()
        complete_sync("t1", "u1", HistoryCursor("H200"))
        result = self._sync()
        self.assertEqual(result.cursor_after, "H200")
        self.assertEqual(get_account("t1", "u1").cursor, "H200")

    def test_deleted_message_is_skipped(self):
        self._sync()
        self.provider.history.append(
            GmailHistoryRecord.model_validate(
                {"id": "H101", "messagesAdded": [{"message": {"id": "vanished", "threadId": "tZ"}}]}
            )
        )
        self.provider.profile.historyId = "H101"
        result = self._sync()
        self.assertEqual(result.messages_skipped, 1)
        self.assertEqual(result.messages_inserted, 0)
        self.assertEqual(result.cursor_after, "H101")

    def test_expired_history_rebootstraps(self):
        self._sync()
        self.provider.min_history_id = HistoryCursor("H300")
        self.provider.profile.historyId = "H400"
        self.provider.messages.insert(0, GmailMessage.model_validate(gmail_message("m9", "tD")))

        result = self._sync()
        self.assertEqual(result.mode, "rebootstrap")
        self.assertEqual(result.cursor_after, "H400")
        self.assertEqual(result.messages_inserted, 1)
        self.assertEqual(count_messages("t1"), 4)

    def test_mailbox_auth_error_invalidates_token(self):
        provider = FlakyMockProvider(first_sync_mailbox(), fail_on="m3", error=UpstreamAuthError("expired", status=401))
        with self.assertRaises(UpstreamAuthError):
            self._sync(provider)
        self.assertEqual(self.tokens.invalidated, [("t1", "u1")])
        self.assertIsNone(get_account("t1", "u1").cursor)

    def test_run_account_captures_errors(self):
        outcome = asyncio.run(self._orchestrator().run_account("t1", "nobody"))
        self.assertFalse(outcome.ok)
        self.assertEqual(outcome.error_type, "CredentialMissingError")

    def test_run_account_captures_unexpected_errors(self):
        provider = FlakyMockProvider(first_sync_mailbox(), fail_on="m3", error=RuntimeError("boom"))
        outcome = asyncio.run(self._orchestrator(provider).run_account("t1", "u1", email="me@example.com"))
        self.assertEqual(outcome.status, "error")
        self.assertEqual(outcome.error_type, "RuntimeError")
        self.assertEqual(outcome.email, "me@example.com")

    def test_run_account_success(self):
        outcome = asyncio.run(self._orchestrator().run_account("t1", "u1"))
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.result.cursor_after, "H100")


if __name__ == "__main__":
    unittest.main()
