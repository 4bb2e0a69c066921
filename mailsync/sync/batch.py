"""Batch runner: sync the accounts most overdue for a run, isolating failures per account."""

import asyncio
from datetime import datetime, timezone

from mailsync.config import SYNC_CONCURRENCY, SYNC_MAX_ACCOUNTS
from mailsync.db.models.account import MailAccount
from mailsync.db.repositories.account_repo import list_accounts_due
from mailsync.models.outputs import AccountOutcome, BatchReport
from mailsync.sync.orchestrator import SyncOrchestrator
from mailsync.utils.logger import get_logger
from mailsync.utils.tracing import get_tracer, mark_span_failed

logger = get_logger("mailsync.sync.batch")

MAX_CONCURRENCY = 16


def account_key(tenant_id: str, user_id: str) -> str:
    return f"{tenant_id}:{user_id}"


async def _batch_worker(
    orchestrator: SyncOrchestrator,
    queue: "asyncio.Queue[tuple[int, MailAccount]]",
    outcomes: list[AccountOutcome],
    worker_id: int,
) -> None:
    """Drain the queue; each account is handled wholly by one worker."""
    while True:
        try:
            index, account = queue.get_nowait()
        except asyncio.QueueEmpty:
            logger.debug("sync.batch.worker_done", worker_id=worker_id)
            return
        try:
            outcomes[index] = await orchestrator.run_account(account.tenant_id, account.user_id, email=account.email)
        finally:
            queue.task_done()


async def run_batch(
    orchestrator: SyncOrchestrator,
    max_accounts: int = SYNC_MAX_ACCOUNTS,
    concurrency: int = SYNC_CONCURRENCY,
) -> BatchReport:
    """Sync up to max_accounts due accounts (never-synced first). One failure never stops the rest."""
    tracer = get_tracer()
    report = BatchReport(started_at=datetime.now(timezone.utc))
    with tracer.start_as_current_span("sync_batch", attributes={"sync.max_accounts": max_accounts}) as span:
        try:
            accounts = await asyncio.to_thread(list_accounts_due, max_accounts)
        except Exception as e:
            mark_span_failed(span, e)
            raise

        worker_count = max(1, min(concurrency, MAX_CONCURRENCY, len(accounts) or 1))
        logger.info("sync.batch.start", accounts=len(accounts), workers=worker_count)

        queue: asyncio.Queue[tuple[int, MailAccount]] = asyncio.Queue()
        for index, account in enumerate(accounts):
            queue.put_nowait((index, account))
        outcomes: list[AccountOutcome] = [None] * len(accounts)  # type: ignore[list-item]
        await asyncio.gather(
            *(_batch_worker(orchestrator, queue, outcomes, i) for i in range(worker_count))
        )

        report.outcomes = outcomes
        report.total = len(outcomes)
        report.succeeded = sum(1 for o in outcomes if o.ok)
        report.failed = report.total - report.succeeded
        report.errors = {
            account_key(o.tenant_id, o.user_id): f"{o.error_type}: {o.error}" for o in outcomes if not o.ok
        }
        report.finished_at = datetime.now(timezone.utc)

        span.set_attribute("sync.total", report.total)
        span.set_attribute("sync.failed", report.failed)
        logger.info(
            "sync.batch.complete",
            total=report.total,
            succeeded=report.succeeded,
            failed=report.failed,
        )
        return report
