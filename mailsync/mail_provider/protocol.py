"""Mail provider protocol (Gmail-like interface)."""

from typing import Optional, Protocol

from mailsync.mail_provider.gmail_models import (
    GmailHistoryPage,
    GmailMessage,
    GmailMessageRef,
    GmailProfile,
)


class MailProvider(Protocol):
    """Read-only view of one mailbox, authenticated for a single account."""

    async def get_profile(self) -> GmailProfile:
        """Current mailbox profile, including the provider-side history cursor."""
        ...

    async def list_recent_messages(self, max_results: int) -> list[GmailMessageRef]:
        """Most recent message references, newest first, at most max_results."""
        ...

    async def get_message(self, message_id: str) -> Optional[GmailMessage]:
        """Full message payload, or None if the message no longer exists."""
        ...

    async def list_history(self, start_history_id: str, page_token: Optional[str] = None) -> GmailHistoryPage:
        """One page of message-added changes since start_history_id.

        Raises HistoryExpiredError when start_history_id is too old for the feed.
        """
        ...
