"""CLI commands: one module per area (setup, sync, server)."""

from typer import Typer

from mailsync.cli import server_mode, setup_mode, sync_mode
from mailsync.utils.tracing import init_tracing

init_tracing()

app = Typer(help="Incremental mailbox sync")


def register_commands() -> None:
    """Register all CLI commands on the global app."""
    app.command(name="init-db")(setup_mode.init_db)
    app.command(name="generate-key")(setup_mode.generate_key)
    app.command(name="link-account")(setup_mode.link_account)
    app.command(name="sync-account")(sync_mode.sync_account)
    app.command(name="sync-batch")(sync_mode.sync_batch)
    app.command()(server_mode.serve)


register_commands()
