"""FastAPI app exposing the scheduled sync trigger (GET|POST /sync/cron) and /health."""

import hmac
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from mailsync.config import CRON_SECRET, HTTP_TIMEOUT_SECONDS, SYNC_CONCURRENCY, SYNC_MAX_ACCOUNTS
from mailsync.sync.batch import run_batch
from mailsync.sync.orchestrator import SyncOrchestrator, build_gmail_orchestrator
from mailsync.utils.logger import get_logger

logger = get_logger("mailsync.server")

OrchestratorFactory = Callable[[httpx.AsyncClient], SyncOrchestrator]


def _check_cron_auth(request: Request, secret: str) -> None:
    """Require Authorization: Bearer <secret>. Unset secret means the trigger is disabled."""
    if not secret:
        logger.error("server.cron.not_configured")
        raise HTTPException(status_code=500, detail="Cron not configured")
    provided = request.headers.get("authorization", "")
    if not hmac.compare_digest(provided.encode("utf-8"), f"Bearer {secret}".encode("utf-8")):
        logger.warning("server.cron.unauthorized")
        raise HTTPException(status_code=401, detail="Unauthorized")


@asynccontextmanager
async def _lifespan(app: FastAPI, orchestrator_factory: OrchestratorFactory):
    """One pooled HTTP client per server process, shared by the broker and providers."""
    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(HTTP_TIMEOUT_SECONDS),
        limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
    )
    app.state.http_client = http_client
    app.state.orchestrator = orchestrator_factory(http_client)
    logger.info("server.lifespan.started")
    try:
        yield
    finally:
        await http_client.aclose()
        logger.info("server.lifespan.stopped")


def create_app(
    orchestrator_factory: Optional[OrchestratorFactory] = None,
    cron_secret: Optional[str] = None,
    concurrency: int = SYNC_CONCURRENCY,
) -> FastAPI:
    """
    Create the FastAPI app. orchestrator_factory builds the orchestrator from the lifespan's
    HTTP client (defaults to the Gmail wiring); cron_secret defaults to CRON_SECRET.
    """
    factory = orchestrator_factory or build_gmail_orchestrator
    secret = CRON_SECRET if cron_secret is None else cron_secret
    app = FastAPI(
        title="mailsync",
        version="0.1.0",
        lifespan=lambda app: _lifespan(app, factory),
    )

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.api_route("/sync/cron", methods=["GET", "POST"])
    async def sync_cron(
        request: Request,
        max_accounts: int = Query(SYNC_MAX_ACCOUNTS, ge=1, le=500),
    ) -> Any:
        """Sync the accounts most overdue for a run; per-account failures are reported, not raised."""
        _check_cron_auth(request, secret)
        logger.info("server.cron.start", max_accounts=max_accounts)
        try:
            report = await run_batch(request.app.state.orchestrator, max_accounts=max_accounts, concurrency=concurrency)
        except Exception as e:
            logger.exception("server.cron.failed", error=str(e))
            return JSONResponse(status_code=500, content={"success": False, "error": str(e) or "Internal server error"})

        return {
            "success": True,
            "total": report.total,
            "synced": report.succeeded,
            "failed": report.failed,
            "errors": [
                {
                    "tenant_id": o.tenant_id,
                    "user_id": o.user_id,
                    "email": o.email,
                    "error_type": o.error_type,
                    "error": o.error,
                }
                for o in report.outcomes
                if not o.ok
            ],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app
