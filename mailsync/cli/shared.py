"""Shared CLI helpers: console, logger, HTTP client, orchestrator wiring, report table."""

from pathlib import Path
from typing import Optional

import httpx
from rich.console import Console
from rich.table import Table

from mailsync.config import HTTP_TIMEOUT_SECONDS, SYNC_BOOTSTRAP_WINDOW
from mailsync.mail_provider import GmailMockProvider, StaticTokenSource
from mailsync.models.outputs import AccountOutcome
from mailsync.sync.orchestrator import SyncOrchestrator, build_gmail_orchestrator
from mailsync.utils.logger import get_logger

console = Console()
logger = get_logger("mailsync.cli")


def make_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=httpx.Timeout(HTTP_TIMEOUT_SECONDS))


def make_orchestrator(
    http_client: httpx.AsyncClient,
    mock_mailbox: Optional[Path] = None,
    bootstrap_window: int = SYNC_BOOTSTRAP_WINDOW,
) -> SyncOrchestrator:
    """Gmail wiring, or a fixture-backed mailbox (no OAuth exchange) when mock_mailbox is set."""
    if mock_mailbox is None:
        return build_gmail_orchestrator(http_client, bootstrap_window=bootstrap_window)
    provider = GmailMockProvider.from_file(mock_mailbox)
    logger.info("cli.mock_mailbox", path=str(mock_mailbox))
    return SyncOrchestrator(
        broker=StaticTokenSource(),
        provider_factory=lambda token, account: provider,
        bootstrap_window=bootstrap_window,
    )


def outcomes_table(outcomes: list[AccountOutcome]) -> Table:
    table = Table(title="Sync results")
    table.add_column("Tenant")
    table.add_column("User")
    table.add_column("Status")
    table.add_column("Mode")
    table.add_column("Inserted", justify="right")
    table.add_column("Cursor / error")
    for o in outcomes:
        if o.ok and o.result is not None:
            table.add_row(
                o.tenant_id,
                o.user_id,
                "[green]ok[/green]",
                o.result.mode,
                str(o.result.messages_inserted),
                o.result.cursor_after or "",
            )
        else:
            table.add_row(o.tenant_id, o.user_id, "[red]error[/red]", "", "", f"{o.error_type}: {o.error}")
    return table
