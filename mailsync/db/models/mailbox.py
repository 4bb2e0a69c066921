"""ORM models for synced mailbox content: threads and messages, both tenant scoped."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mailsync.db.base import Base, TimestampMixin

THREAD_STATUS_OPEN = "open"


class Thread(Base, TimestampMixin):
    """One row per provider conversation id within a tenant."""

    __tablename__ = "threads"
    __table_args__ = (UniqueConstraint("tenant_id", "provider_thread_id", name="uq_threads_tenant_provider_id"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    provider_thread_id: Mapped[str] = mapped_column(String(128), nullable=False)
    subject: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    last_message_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=THREAD_STATUS_OPEN)
    sender_email: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    snippet: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    unread: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Message(Base, TimestampMixin):
    """One row per provider message id within a tenant. Content columns are write-once."""

    __tablename__ = "messages"
    __table_args__ = (UniqueConstraint("tenant_id", "provider_message_id", name="uq_messages_tenant_provider_id"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    thread_id: Mapped[int] = mapped_column(ForeignKey("threads.id"), nullable=False, index=True)
    provider_message_id: Mapped[str] = mapped_column(String(128), nullable=False)
    from_email: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    to_emails_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    snippet: Mapped[str] = mapped_column(Text, nullable=False, default="")
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_outbound: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Filled in later by the external analyzer; NULL means "not analyzed yet".
    analysis_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    analyzed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
