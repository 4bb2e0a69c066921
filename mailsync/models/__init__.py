"""Domain models: cursor value type, parsed messages, sync results."""

from mailsync.models.cursor import HistoryCursor
from mailsync.models.email import MessageAddedEvent, ParsedMessage
from mailsync.models.outputs import AccountOutcome, AccountSyncResult, BatchReport, SyncMode

__all__ = [
    "HistoryCursor",
    "ParsedMessage",
    "MessageAddedEvent",
    "AccountSyncResult",
    "AccountOutcome",
    "BatchReport",
    "SyncMode",
]
