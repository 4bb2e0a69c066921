"""ORM model for linked mailbox accounts: encrypted credential plus sync bookkeeping."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, LargeBinary, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mailsync.db.base import Base, TimestampMixin


class MailAccount(Base, TimestampMixin):
    """One row per (tenant, local user). cursor is NULL until the first bootstrap completes."""

    __tablename__ = "mail_accounts"
    __table_args__ = (UniqueConstraint("tenant_id", "user_id", name="uq_mail_accounts_tenant_user"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    encrypted_refresh_token: Mapped[Optional[bytes]] = mapped_column(LargeBinary, nullable=True)

    cursor: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
