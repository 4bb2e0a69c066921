"""Sync commands: one account, or a batch of the accounts most overdue for a run."""

import asyncio
from pathlib import Path
from typing import Optional

import typer

from mailsync.config import SYNC_CONCURRENCY, SYNC_MAX_ACCOUNTS
from mailsync.db import init_db
from mailsync.models.outputs import AccountOutcome, BatchReport
from mailsync.sync.batch import run_batch

from .shared import console, logger, make_http_client, make_orchestrator, outcomes_table

_MOCK_HELP = "Serve the mailbox from a JSON fixture instead of Gmail (no token exchange)"


async def _sync_one(tenant_id: str, user_id: str, mock_mailbox: Optional[Path]) -> AccountOutcome:
    async with make_http_client() as http_client:
        orchestrator = make_orchestrator(http_client, mock_mailbox=mock_mailbox)
        return await orchestrator.run_account(tenant_id, user_id)


async def _sync_many(max_accounts: int, concurrency: int, mock_mailbox: Optional[Path]) -> BatchReport:
    async with make_http_client() as http_client:
        orchestrator = make_orchestrator(http_client, mock_mailbox=mock_mailbox)
        return await run_batch(orchestrator, max_accounts=max_accounts, concurrency=concurrency)


def sync_account(
    tenant_id: str = typer.Argument(..., help="Tenant id"),
    user_id: str = typer.Argument(..., help="User id within the tenant"),
    mock_mailbox: Optional[Path] = typer.Option(None, "--mock-mailbox", "-m", help=_MOCK_HELP),
) -> None:
    """Sync one account now."""
    init_db()
    outcome = asyncio.run(_sync_one(tenant_id, user_id, mock_mailbox))
    console.print(outcomes_table([outcome]))
    if not outcome.ok:
        raise typer.Exit(1)


def sync_batch(
    max_accounts: int = typer.Option(SYNC_MAX_ACCOUNTS, "--max-accounts", "-n", min=1, help="Accounts per run"),
    concurrency: int = typer.Option(SYNC_CONCURRENCY, "--concurrency", "-c", min=1, help="Accounts synced at once"),
    mock_mailbox: Optional[Path] = typer.Option(None, "--mock-mailbox", "-m", help=_MOCK_HELP),
) -> None:
    """Sync the accounts most overdue for a run (never-synced first)."""
    init_db()
    log = logger.bind(command="sync-batch", max_accounts=max_accounts, concurrency=concurrency)
    report = asyncio.run(_sync_many(max_accounts, concurrency, mock_mailbox))
    if not report.outcomes:
        console.print("[yellow]No linked accounts to sync.[/yellow]")
        log.info("sync_batch.no_accounts")
        return
    console.print(outcomes_table(report.outcomes))
    console.print(f"[bold]{report.succeeded}/{report.total} synced[/bold], {report.failed} failed")
    if report.failed:
        raise typer.Exit(1)
