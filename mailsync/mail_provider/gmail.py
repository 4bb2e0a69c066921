"""Gmail REST v1 mail provider (async, httpx), authenticated with one bearer token."""

import asyncio
from typing import Any, Optional
from urllib.parse import quote

import httpx

from mailsync.config import FETCH_BASE_DELAY, FETCH_MAX_ATTEMPTS, GMAIL_API_BASE_URL
from mailsync.errors import HistoryExpiredError, UpstreamAuthError, UpstreamRequestError
from mailsync.mail_provider.gmail_models import (
    GmailHistoryPage,
    GmailMessage,
    GmailMessageList,
    GmailMessageRef,
    GmailProfile,
)
from mailsync.mail_provider.retry import Sleep, fetch_with_retry
from mailsync.utils.logger import get_logger

logger = get_logger("mailsync.mail_provider.gmail")

# users.messages.list caps maxResults per page
MAX_LIST_PAGE_SIZE = 500


class GmailProvider:
    """Read-only Gmail mailbox client for the account the bearer token belongs to."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        access_token: str,
        base_url: str = GMAIL_API_BASE_URL,
        max_attempts: int = FETCH_MAX_ATTEMPTS,
        base_delay: float = FETCH_BASE_DELAY,
        sleep: Sleep = asyncio.sleep,
    ):
        self._http = http_client
        self._access_token = access_token
        self._base_url = base_url.rstrip("/")
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._sleep = sleep

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> httpx.Response:
        request = self._http.build_request(
            "GET",
            f"{self._base_url}/users/me/{path}",
            params=params,
            headers={"Authorization": f"Bearer {self._access_token}"},
        )
        response = await fetch_with_retry(
            self._http,
            request,
            max_attempts=self._max_attempts,
            base_delay=self._base_delay,
            sleep=self._sleep,
        )
        if response.status_code == 401:
            raise UpstreamAuthError(f"Mailbox API rejected the bearer token on {path}", status=401)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, what: str) -> None:
        if response.is_success:
            return
        logger.warning("gmail.request_failed", what=what, status=response.status_code)
        raise UpstreamRequestError(
            f"Gmail {what} failed with status {response.status_code}",
            status=response.status_code,
            body=response.text,
        )

    async def get_profile(self) -> GmailProfile:
        response = await self._get("profile")
        self._raise_for_status(response, "profile")
        return GmailProfile.model_validate(response.json())

    async def list_recent_messages(self, max_results: int) -> list[GmailMessageRef]:
        refs: list[GmailMessageRef] = []
        page_token: Optional[str] = None
        while len(refs) < max_results:
            params: dict[str, Any] = {"maxResults": min(max_results - len(refs), MAX_LIST_PAGE_SIZE)}
            if page_token:
                params["pageToken"] = page_token
            response = await self._get("messages", params=params)
            self._raise_for_status(response, "messages.list")
            listing = GmailMessageList.model_validate(response.json())
            refs.extend(listing.messages)
            page_token = listing.nextPageToken
            if not page_token or not listing.messages:
                break
        return refs[:max_results]

    async def get_message(self, message_id: str) -> Optional[GmailMessage]:
        response = await self._get(f"messages/{quote(message_id, safe='')}", params={"format": "full"})
        if response.status_code == 404:
            logger.info("gmail.message_gone", message_id=message_id)
            return None
        self._raise_for_status(response, "messages.get")
        return GmailMessage.model_validate(response.json())

    async def list_history(self, start_history_id: str, page_token: Optional[str] = None) -> GmailHistoryPage:
        params: dict[str, Any] = {"startHistoryId": start_history_id, "historyTypes": "messageAdded"}
        if page_token:
            params["pageToken"] = page_token
        response = await self._get("history", params=params)
        if response.status_code == 404:
            raise HistoryExpiredError(f"History cursor {start_history_id} is no longer available")
        self._raise_for_status(response, "history.list")
        return GmailHistoryPage.model_validate(response.json())
