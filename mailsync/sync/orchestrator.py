"""Sync one account: bootstrap or incremental walk, idempotent ingest, then cursor advance."""

import asyncio
from time import perf_counter
from typing import Callable, Optional, Protocol

from mailsync.config import SYNC_BOOTSTRAP_WINDOW
from mailsync.db.models.account import MailAccount
from mailsync.db.repositories.account_repo import complete_sync, get_account
from mailsync.db.repositories.message_repo import ingest_message
from mailsync.errors import CredentialMissingError, HistoryExpiredError, MailSyncError, UpstreamAuthError
from mailsync.mail_provider.mapping import gmail_message_to_parsed
from mailsync.mail_provider.protocol import MailProvider
from mailsync.models.cursor import HistoryCursor
from mailsync.models.email import MessageAddedEvent
from mailsync.models.outputs import AccountOutcome, AccountSyncResult
from mailsync.sync.history import HistoryWalker
from mailsync.utils.logger import bind_context, get_logger, unbind_context
from mailsync.utils.tracing import get_tracer, mark_span_failed

logger = get_logger("mailsync.sync.orchestrator")


class TokenSource(Protocol):
    async def get_access_token(self, tenant_id: str, user_id: str) -> str: ...

    def invalidate(self, tenant_id: str, user_id: str) -> None: ...


# (bearer token, account row) -> provider bound to that mailbox
ProviderFactory = Callable[[str, MailAccount], MailProvider]


class SyncOrchestrator:
    """Per-account state machine: no cursor -> bootstrap, cursor -> incremental.

    The stored cursor only moves after every event of the run has been ingested, so a
    crash or error anywhere before that replays the same events next time.
    """

    def __init__(
        self,
        broker: TokenSource,
        provider_factory: ProviderFactory,
        bootstrap_window: int = SYNC_BOOTSTRAP_WINDOW,
    ):
        self._broker = broker
        self._provider_factory = provider_factory
        self._bootstrap_window = bootstrap_window

    async def sync_account(self, tenant_id: str, user_id: str) -> AccountSyncResult:
        """Run one sync for (tenant, user). Raises on any failure; cursor is then untouched."""
        tracer = get_tracer()
        start = perf_counter()
        log = logger.bind(tenant_id=tenant_id, user_id=user_id)
        bind_context(tenant_id=tenant_id, user_id=user_id)
        try:
            with tracer.start_as_current_span(
                "sync_account",
                attributes={"sync.tenant_id": tenant_id, "sync.user_id": user_id},
            ) as span:
                try:
                    account = await asyncio.to_thread(get_account, tenant_id, user_id)
                    if account is None or account.encrypted_refresh_token is None:
                        raise CredentialMissingError(f"No linked mailbox for user {user_id} in tenant {tenant_id}")

                    cursor_before = HistoryCursor.parse(account.cursor)
                    result = AccountSyncResult(
                        tenant_id=tenant_id,
                        user_id=user_id,
                        mode="bootstrap" if cursor_before is None else "incremental",
                        cursor_before=cursor_before.value if cursor_before else None,
                    )
                    log.info("sync.account.start", mode=result.mode, cursor=result.cursor_before)

                    try:
                        token = await self._broker.get_access_token(tenant_id, user_id)
                        provider = self._provider_factory(token, account)
                        if cursor_before is None:
                            new_cursor = await self._bootstrap(provider, account, result)
                        else:
                            try:
                                new_cursor = await self._incremental(provider, account, cursor_before, result)
                            except HistoryExpiredError:
                                log.warning("sync.account.history_expired", cursor=cursor_before.value)
                                result.mode = "rebootstrap"
                                new_cursor = await self._bootstrap(provider, account, result)
                    except UpstreamAuthError:
                        self._broker.invalidate(tenant_id, user_id)
                        raise

                    result.cursor_after = await asyncio.to_thread(complete_sync, tenant_id, user_id, new_cursor)
                    span.set_attribute("sync.mode", result.mode)
                    span.set_attribute("sync.messages_inserted", result.messages_inserted)
                    log.info(
                        "sync.account.complete",
                        mode=result.mode,
                        cursor=result.cursor_after,
                        pages=result.pages,
                        seen=result.messages_seen,
                        inserted=result.messages_inserted,
                        skipped=result.messages_skipped,
                        duration_ms=round((perf_counter() - start) * 1000, 2),
                    )
                    return result
                except Exception as e:
                    mark_span_failed(span, e)
                    raise
        finally:
            unbind_context("tenant_id", "user_id")

    async def run_account(self, tenant_id: str, user_id: str, email: Optional[str] = None) -> AccountOutcome:
        """Failure boundary: sync the account and report the outcome. Never raises."""
        try:
            result = await self.sync_account(tenant_id, user_id)
        except Exception as e:
            if isinstance(e, MailSyncError):
                logger.error(
                    "sync.account.failed",
                    tenant_id=tenant_id,
                    user_id=user_id,
                    error_type=type(e).__name__,
                    error=str(e),
                )
            else:
                logger.exception(
                    "sync.account.crashed",
                    tenant_id=tenant_id,
                    user_id=user_id,
                    error_type=type(e).__name__,
                )
            return AccountOutcome(
                tenant_id=tenant_id,
                user_id=user_id,
                email=email,
                status="error",
                error_type=type(e).__name__,
                error=str(e),
            )
        return AccountOutcome(tenant_id=tenant_id, user_id=user_id, email=email, status="success", result=result)

    async def _bootstrap(self, provider: MailProvider, account: MailAccount, result: AccountSyncResult) -> HistoryCursor:
        boot = await HistoryWalker(provider).bootstrap(self._bootstrap_window)
        for event in boot.events:
            await self._ingest(provider, account, event, result)
        return boot.cursor

    async def _incremental(
        self,
        provider: MailProvider,
        account: MailAccount,
        start: HistoryCursor,
        result: AccountSyncResult,
    ) -> HistoryCursor:
        walk = HistoryWalker(provider).incremental(start)
        async for event in walk.events():
            await self._ingest(provider, account, event, result)
        result.pages = walk.pages
        return walk.cursor

    async def _ingest(
        self,
        provider: MailProvider,
        account: MailAccount,
        event: MessageAddedEvent,
        result: AccountSyncResult,
    ) -> None:
        result.messages_seen += 1
        message = await provider.get_message(event.message_id)
        if message is None:
            result.messages_skipped += 1
            return
        parsed = gmail_message_to_parsed(message)
        inserted = await asyncio.to_thread(ingest_message, account.tenant_id, account.email, parsed)
        if inserted:
            result.messages_inserted += 1


def build_gmail_orchestrator(http_client, bootstrap_window: int = SYNC_BOOTSTRAP_WINDOW) -> SyncOrchestrator:
    """Orchestrator wired to the real OAuth token endpoint and Gmail REST API over one shared client."""
    from mailsync.auth.token_broker import AccessTokenBroker
    from mailsync.mail_provider.gmail import GmailProvider

    broker = AccessTokenBroker(http_client)
    return SyncOrchestrator(
        broker=broker,
        provider_factory=lambda token, account: GmailProvider(http_client, token),
        bootstrap_window=bootstrap_window,
    )
