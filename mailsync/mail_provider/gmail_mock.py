"""Mock mail provider: a mailbox fixture (dict or JSON file) served through the provider protocol.

Fixture shape::

    {
      "profile": {"emailAddress": "me@example.com", "historyId": "100"},
      "messages": [<full Gmail message>, ...],          # newest first
      "history": [{"id": "101", "messagesAdded": [{"message": {"id": ..., "threadId": ...}}]}],
      "min_history_id": "50"                             # optional; older cursors are expired
    }
"""

import json
from pathlib import Path
from typing import Any, Optional

from mailsync.errors import HistoryExpiredError
from mailsync.mail_provider.gmail_models import (
    GmailHistoryPage,
    GmailHistoryRecord,
    GmailMessage,
    GmailMessageRef,
    GmailProfile,
)
from mailsync.models.cursor import HistoryCursor
from mailsync.utils.logger import get_logger

logger = get_logger("mailsync.mail_provider.gmail_mock")


class GmailMockProvider:
    """In-memory mailbox. Mutations (add_message) advance the profile history id."""

    def __init__(self, mailbox: Optional[dict[str, Any]] = None, page_size: int = 100):
        mailbox = mailbox or {}
        self.profile = GmailProfile.model_validate(mailbox.get("profile") or {})
        self.messages: list[GmailMessage] = [GmailMessage.model_validate(m) for m in mailbox.get("messages", [])]
        self.history: list[GmailHistoryRecord] = [
            GmailHistoryRecord.model_validate(r) for r in mailbox.get("history", [])
        ]
        self.min_history_id = HistoryCursor.parse(mailbox.get("min_history_id"))
        self.page_size = max(1, page_size)
        self.calls: list[str] = []
        logger.debug(
            "mail_provider.mock_loaded",
            message_count=len(self.messages),
            history_records=len(self.history),
        )

    @classmethod
    def from_file(cls, path: Path, page_size: int = 100) -> "GmailMockProvider":
        with Path(path).open("r", encoding="utf-8") as f:
            data = json.load(f)
        return cls(data, page_size=page_size)

    def add_message(self, message: dict[str, Any], history_id: str) -> None:
        """Deliver a new message: prepend it and append a messageAdded record with history_id."""
        parsed = GmailMessage.model_validate(message)
        self.messages.insert(0, parsed)
        self.history.append(
            GmailHistoryRecord.model_validate(
                {"id": history_id, "messagesAdded": [{"message": {"id": parsed.id, "threadId": parsed.threadId}}]}
            )
        )
        self.profile.historyId = history_id

    async def get_profile(self) -> GmailProfile:
        self.calls.append("get_profile")
        return self.profile.model_copy()

    async def list_recent_messages(self, max_results: int) -> list[GmailMessageRef]:
        self.calls.append("list_recent_messages")
        if max_results <= 0:
            return []
        return [GmailMessageRef(id=m.id, threadId=m.threadId) for m in self.messages[:max_results]]

    async def get_message(self, message_id: str) -> Optional[GmailMessage]:
        self.calls.append(f"get_message:{message_id}")
        for m in self.messages:
            if m.id == message_id:
                return m
        return None

    async def list_history(self, start_history_id: str, page_token: Optional[str] = None) -> GmailHistoryPage:
        self.calls.append(f"list_history:{start_history_id}:{page_token or ''}")
        start = HistoryCursor(start_history_id)
        if self.min_history_id is not None and start < self.min_history_id:
            raise HistoryExpiredError(f"History cursor {start_history_id} is no longer available")

        records = [r for r in self.history if r.id and HistoryCursor(r.id) > start]
        offset = int(page_token) if page_token else 0
        page = records[offset : offset + self.page_size]
        next_offset = offset + self.page_size
        return GmailHistoryPage(
            history=page,
            nextPageToken=str(next_offset) if next_offset < len(records) else None,
            historyId=self.profile.historyId,
        )


class StaticTokenSource:
    """Token source for mock mailbox runs: hands out a fixed bearer token, no exchange."""

    def __init__(self, token: str = "mock-access-token"):
        self.token = token
        self.invalidated: list[tuple[str, str]] = []

    async def get_access_token(self, tenant_id: str, user_id: str) -> str:
        return self.token

    def invalidate(self, tenant_id: str, user_id: str) -> None:
        self.invalidated.append((tenant_id, user_id))
