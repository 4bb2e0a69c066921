"""Mail provider: Gmail-like interface, real REST client and mock implementation."""

from mailsync.mail_provider.gmail import GmailProvider
from mailsync.mail_provider.gmail_mock import GmailMockProvider, StaticTokenSource
from mailsync.mail_provider.gmail_models import (
    GmailHistoryPage,
    GmailHistoryRecord,
    GmailMessage,
    GmailMessageRef,
    GmailProfile,
)
from mailsync.mail_provider.mapping import gmail_message_to_parsed
from mailsync.mail_provider.protocol import MailProvider
from mailsync.mail_provider.retry import fetch_with_retry, is_transient_status

__all__ = [
    "GmailProvider",
    "GmailMockProvider",
    "StaticTokenSource",
    "GmailHistoryPage",
    "GmailHistoryRecord",
    "GmailMessage",
    "GmailMessageRef",
    "GmailProfile",
    "MailProvider",
    "gmail_message_to_parsed",
    "fetch_with_retry",
    "is_transient_status",
]
