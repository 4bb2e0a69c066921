"""Provider-neutral message model handed to the upsert layer."""

from datetime import datetime

from pydantic import BaseModel, Field


class ParsedMessage(BaseModel):
    """Fields extracted from a provider message, ready for storage."""

    provider_message_id: str
    provider_thread_id: str
    subject: str = ""
    from_header: str = ""
    from_email: str = ""
    to_emails: list[str] = Field(default_factory=list)
    sent_at: datetime
    snippet: str = ""
    body: str = ""


class MessageAddedEvent(BaseModel):
    """A message reference observed in the change feed (or the bootstrap window)."""

    message_id: str
    thread_id: str
