"""Tests for run_batch: per-account failure isolation, ordering, limits, worker pool."""

import asyncio
import unittest
from urllib.parse import parse_qs

import httpx

from support import DatabaseTestCase, gmail_message, make_vault

from mailsync.auth.token_broker import AccessTokenBroker, AccessTokenCache
from mailsync.db.repositories.account_repo import get_account, link_account
from mailsync.db.repositories.message_repo import count_messages
from mailsync.mail_provider.gmail_mock import GmailMockProvider
from mailsync.sync.batch import run_batch
from mailsync.sync.orchestrator import SyncOrchestrator

MAILBOX = {
    "profile": {"emailAddress": "me@example.com", "historyId": "500"},
    "messages": [gmail_message("m2", "tA"), gmail_message("m1", "tA")],
}


class TestRunBatch(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        vault = make_vault()
        for n in (1, 2, 3):
            link_account(f"t{n}", f"u{n}", f"user{n}@example.com", vault.seal(f"rt-{n}"))
        self.exchanges: list[str] = []

    def _token_endpoint(self, request: httpx.Request) -> httpx.Response:
        refresh_token = parse_qs(request.content.decode("utf-8"))["refresh_token"][0]
        self.exchanges.append(refresh_token)
        if refresh_token == "rt-2":
            return httpx.Response(400, json={"error": "invalid_grant", "error_description": "Token has been revoked."})
        return httpx.Response(200, json={"access_token": f"at-{refresh_token}", "expires_in": 3600})

    def _run(self, max_accounts: int = 50, concurrency: int = 1):
        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(self._token_endpoint)) as client:
                broker = AccessTokenBroker(
                    client,
                    vault=make_vault(),
                    client_id="cid",
                    client_secret="secret",
                    token_url="https://oauth.test/token",
                    cache=AccessTokenCache(),
                )
                orchestrator = SyncOrchestrator(broker, lambda token, account: GmailMockProvider(MAILBOX))
                return await run_batch(orchestrator, max_accounts=max_accounts, concurrency=concurrency)

        return asyncio.run(run())

    def _assert_partial_failure(self, report):
        self.assertEqual(report.total, 3)
        self.assertEqual(report.succeeded, 2)
        self.assertEqual(report.failed, 1)
        self.assertEqual(list(report.errors), ["t2:u2"])
        self.assertIn("UpstreamAuthError", report.errors["t2:u2"])
        self.assertEqual(get_account("t1", "u1").cursor, "500")
        self.assertEqual(get_account("t3", "u3").cursor, "500")
        failed = get_account("t2", "u2")
        self.assertIsNone(failed.cursor)
        self.assertIsNone(failed.last_synced_at)
        self.assertEqual(count_messages("t2"), 0)
        self.assertEqual(count_messages("t3"), 2)

    def test_one_revoked_account_does_not_stop_the_batch(self):
        report = self._run()
        self._assert_partial_failure(report)
        self.assertEqual([o.user_id for o in report.outcomes], ["u1", "u2", "u3"])
        self.assertEqual(report.outcomes[1].email, "user2@example.com")
        self.assertIsNotNone(report.finished_at)

    def test_worker_pool_gives_same_outcome(self):
        report = self._run(concurrency=3)
        self._assert_partial_failure(report)
        self.assertEqual(sorted(self.exchanges), ["rt-1", "rt-2", "rt-3"])

    def test_failed_account_is_first_in_line_next_run(self):
        self._run()
        report = self._run(max_accounts=1)
        self.assertEqual(report.total, 1)
        self.assertEqual(report.outcomes[0].user_id, "u2")

    def test_empty_batch(self):
        report = self._run(max_accounts=0)
        self.assertEqual(report.total, 0)
        self.assertEqual(report.errors, {})


if __name__ == "__main__":
    unittest.main()
