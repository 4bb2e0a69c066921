"""Mail account repository: link, credential lookup, due-account selection, cursor advance."""

import base64
import binascii
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from mailsync.db import get_session, tenant_session
from mailsync.db.models.account import MailAccount
from mailsync.errors import DecryptionError, PersistenceError
from mailsync.models.cursor import HistoryCursor
from mailsync.utils.logger import get_logger

logger = get_logger("mailsync.db.accounts")


def link_account(
    tenant_id: str,
    user_id: str,
    email: str,
    encrypted_refresh_token: bytes,
) -> MailAccount:
    """Create the account, or store a fresh credential on re-link.

    Re-linking the same mailbox keeps the cursor. Linking a different address resets the
    cursor so the next run bootstraps against the new mailbox.
    """
    email = (email or "").strip()
    if not email:
        raise ValueError("link_account requires an email address")
    with tenant_session(tenant_id) as session:
        row = session.scalars(
            select(MailAccount)
            .where(MailAccount.tenant_id == tenant_id)
            .where(MailAccount.user_id == user_id)
        ).first()
        if row is None:
            row = MailAccount(
                tenant_id=tenant_id,
                user_id=user_id,
                email=email,
                encrypted_refresh_token=encrypted_refresh_token,
            )
            session.add(row)
            logger.info("accounts.linked", tenant_id=tenant_id, user_id=user_id)
        else:
            if row.email.lower() != email.lower():
                row.email = email
                row.cursor = None
                logger.info("accounts.relinked_new_mailbox", tenant_id=tenant_id, user_id=user_id)
            else:
                logger.info("accounts.relinked", tenant_id=tenant_id, user_id=user_id)
            row.encrypted_refresh_token = encrypted_refresh_token
        session.flush()
        session.refresh(row)
        session.expunge(row)
        return row


def get_account(tenant_id: str, user_id: str) -> Optional[MailAccount]:
    """Return the account row for (tenant, user), or None."""
    with tenant_session(tenant_id) as session:
        row = session.scalars(
            select(MailAccount)
            .where(MailAccount.tenant_id == tenant_id)
            .where(MailAccount.user_id == user_id)
        ).first()
        if row is not None:
            session.expunge(row)
        return row


def _normalize_blob(value: object) -> bytes:
    """Stored blobs are bytes; accept base64 text written by older tooling."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecryptionError("Encrypted refresh token is not valid base64") from e
    raise DecryptionError(f"Encrypted refresh token has unsupported type {type(value).__name__}")


def get_encrypted_refresh_token(tenant_id: str, user_id: str) -> Optional[bytes]:
    """Return the sealed refresh token blob, or None when the account or credential is absent."""
    with tenant_session(tenant_id) as session:
        value = session.scalars(
            select(MailAccount.encrypted_refresh_token)
            .where(MailAccount.tenant_id == tenant_id)
            .where(MailAccount.user_id == user_id)
        ).first()
    if value is None:
        return None
    return _normalize_blob(value)


def list_accounts_due(limit: int) -> list[MailAccount]:
    """Linked accounts, never-synced first, then by oldest last_synced_at. Cross-tenant read."""
    if limit <= 0:
        return []
    with get_session() as session:
        q = (
            select(MailAccount)
            .where(MailAccount.encrypted_refresh_token.is_not(None))
            .order_by(
                MailAccount.last_synced_at.is_(None).desc(),
                MailAccount.last_synced_at.asc(),
                MailAccount.id.asc(),
            )
            .limit(limit)
        )
        rows = list(session.scalars(q).all())
        for row in rows:
            session.expunge(row)
        return rows


def complete_sync(
    tenant_id: str,
    user_id: str,
    cursor: Optional[HistoryCursor],
    synced_at: Optional[datetime] = None,
) -> Optional[str]:
    """Persist the advanced cursor and stamp last_synced_at in one transaction.

    The stored cursor never moves backwards. Returns the cursor value now stored.
    """
    synced_at = synced_at or datetime.now(timezone.utc)
    try:
        with tenant_session(tenant_id) as session:
            row = session.scalars(
                select(MailAccount)
                .where(MailAccount.tenant_id == tenant_id)
                .where(MailAccount.user_id == user_id)
                .with_for_update()
            ).first()
            if row is None:
                raise PersistenceError(f"Account for user {user_id} in tenant {tenant_id} disappeared during sync")
            stored = HistoryCursor.parse(row.cursor)
            if cursor is not None and (stored is None or cursor > stored):
                row.cursor = cursor.value
            elif cursor is not None and cursor < stored:
                logger.warning(
                    "accounts.cursor_regression_ignored",
                    tenant_id=tenant_id,
                    user_id=user_id,
                    stored=stored.value,
                    offered=cursor.value,
                )
            row.last_synced_at = synced_at
            return row.cursor
    except SQLAlchemyError as e:
        raise PersistenceError(f"Failed to record sync for user {user_id} in tenant {tenant_id}: {e}") from e
