"""Setup commands: create tables, generate a vault key, link a mailbox account."""

import typer

from mailsync.auth.token_vault import generate_key as generate_vault_key
from mailsync.auth.token_vault import get_vault
from mailsync.db import init_db as init_database
from mailsync.db.repositories.account_repo import link_account as link_mail_account
from mailsync.errors import MailSyncError

from .shared import console, logger


def init_db() -> None:
    """Create the database tables (idempotent)."""
    init_database()
    logger.info("init_db.done")
    console.print("[green]Database initialized.[/green]")


def generate_key() -> None:
    """Print a fresh base64 AES-256 key for TOKEN_VAULT_KEY."""
    console.print(generate_vault_key())


def link_account(
    tenant_id: str = typer.Argument(..., help="Tenant id"),
    user_id: str = typer.Argument(..., help="User id within the tenant"),
    email: str = typer.Argument(..., help="Mailbox address"),
    refresh_token: str = typer.Option(
        ..., "--refresh-token", prompt=True, hide_input=True, help="OAuth refresh token (sealed before storage)"
    ),
) -> None:
    """Seal the refresh token and store (or re-link) the mailbox account."""
    log = logger.bind(command="link-account", tenant_id=tenant_id, user_id=user_id)
    init_database()
    try:
        blob = get_vault().seal(refresh_token)
        account = link_mail_account(tenant_id, user_id, email, blob)
    except (MailSyncError, ValueError) as e:
        console.print(f"[red]{e}[/red]")
        log.error("link_account.fail", error=str(e))
        raise typer.Exit(1) from e
    log.info("link_account.done")
    console.print(
        f"[green]Linked {account.email}[/green] "
        f"[dim](cursor: {account.cursor or 'none, next sync bootstraps'})[/dim]"
    )
