"""HTTP send with bounded exponential backoff on transient upstream failures."""

import asyncio
from typing import Awaitable, Callable, Optional

import httpx

from mailsync.config import FETCH_BASE_DELAY, FETCH_MAX_ATTEMPTS
from mailsync.errors import UpstreamUnavailableError
from mailsync.utils.logger import get_logger

logger = get_logger("mailsync.mail_provider.retry")

Sleep = Callable[[float], Awaitable[None]]


def is_transient_status(status_code: int) -> bool:
    """Rate limited or server-side failure."""
    return status_code == 429 or 500 <= status_code <= 599


def _redacted_url(request: httpx.Request) -> str:
    """Request URL without query string (page tokens, cursors) for logs and errors."""
    url = request.url
    return f"{url.scheme}://{url.host}{url.path}"


def _is_transient_network_error(e: Exception) -> bool:
    """True if the exception is a transient I/O/network error worth retrying."""
    return isinstance(e, (httpx.TransportError, ConnectionResetError, TimeoutError))


async def fetch_with_retry(
    client: httpx.AsyncClient,
    request: httpx.Request,
    max_attempts: int = FETCH_MAX_ATTEMPTS,
    base_delay: float = FETCH_BASE_DELAY,
    sleep: Sleep = asyncio.sleep,
) -> httpx.Response:
    """Send request; on 429/5xx or transport errors wait 2**attempt * base_delay and retry.

    Non-transient responses (success or permanent failure) are returned as-is. Raises
    UpstreamUnavailableError once max_attempts transient failures have been seen.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    last_status: Optional[int] = None
    last_body = ""
    for attempt in range(max_attempts):
        try:
            response = await client.send(request)
        except Exception as e:
            if not _is_transient_network_error(e):
                raise
            last_status = None
            last_body = f"{type(e).__name__}: {e}"
        else:
            if not is_transient_status(response.status_code):
                return response
            await response.aread()
            last_status = response.status_code
            last_body = response.text
        if attempt < max_attempts - 1:
            delay = (2**attempt) * base_delay
            logger.debug(
                "fetch.retry",
                method=request.method,
                url=_redacted_url(request),
                attempt=attempt + 1,
                status=last_status,
                delay=delay,
            )
            await sleep(delay)
    logger.warning(
        "fetch.exhausted",
        method=request.method,
        url=_redacted_url(request),
        attempts=max_attempts,
        status=last_status,
    )
    raise UpstreamUnavailableError(
        f"{request.method} {_redacted_url(request)} failed after {max_attempts} attempts"
        + (f" (last status {last_status})" if last_status is not None else ""),
        status=last_status,
        body=last_body,
    )
