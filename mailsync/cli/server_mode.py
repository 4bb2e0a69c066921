"""Server mode: run the FastAPI app carrying the scheduled sync trigger."""

import typer
import uvicorn

from mailsync.config import CRON_SECRET, SERVER_PORT
from mailsync.db import init_db
from mailsync.server import create_app

from .shared import console, logger


def serve(
    port: int = typer.Option(SERVER_PORT, "--port", "-p", help="Port to listen on"),
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Bind host"),
) -> None:
    """Start the HTTP server exposing /sync/cron and /health."""
    init_db()
    log = logger.bind(command="serve", port=port)
    log.info("serve.start")
    if not CRON_SECRET:
        console.print("[yellow]CRON_SECRET is not set; /sync/cron will answer 500 until it is.[/yellow]")
        log.warning("serve.cron_secret_missing")
    uvicorn.run(create_app(), host=host, port=port)
