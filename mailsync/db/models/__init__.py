"""Re-export all ORM models so Base.metadata has all tables."""

from mailsync.db.models.account import MailAccount
from mailsync.db.models.mailbox import Message, Thread

__all__ = [
    "MailAccount",
    "Thread",
    "Message",
]
