"""Thread/message repository: idempotent ingest plus lookups for the analyzer hand-off."""

import json
from datetime import datetime, timezone
from email.utils import parseaddr
from typing import Any, Optional

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mailsync.db import tenant_session
from mailsync.db.models.mailbox import THREAD_STATUS_OPEN, Message, Thread
from mailsync.errors import PersistenceError
from mailsync.models.email import ParsedMessage
from mailsync.utils.logger import get_logger

logger = get_logger("mailsync.db.messages")


def _insert_for(session: Session):
    """Dialect insert construct supporting ON CONFLICT."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise PersistenceError(f"Unsupported database dialect for upserts: {dialect}")
    return insert


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_outbound(from_header: str, account_email: str) -> bool:
    """True when the parsed sender address is the account's own mailbox address."""
    _, sender = parseaddr(from_header or "")
    sender = (sender or "").strip().lower()
    own = (account_email or "").strip().lower()
    return bool(sender) and sender == own


def _upsert_thread(session: Session, tenant_id: str, message: ParsedMessage, sent_at: datetime, outbound: bool) -> int:
    insert = _insert_for(session)
    now = datetime.now(timezone.utc)
    stmt = insert(Thread).values(
        tenant_id=tenant_id,
        provider_thread_id=message.provider_thread_id,
        subject=message.subject,
        last_message_at=sent_at,
        status=THREAD_STATUS_OPEN,
        sender_email=message.from_email or None,
        snippet=message.snippet or None,
        unread=not outbound,
        created_at=now,
        updated_at=now,
    )
    excluded = stmt.excluded
    newer = excluded.last_message_at > Thread.last_message_at
    stmt = stmt.on_conflict_do_update(
        index_elements=[Thread.tenant_id, Thread.provider_thread_id],
        set_={
            "subject": case((newer, excluded.subject), else_=Thread.subject),
            "sender_email": case((newer, excluded.sender_email), else_=Thread.sender_email),
            "snippet": case((newer, excluded.snippet), else_=Thread.snippet),
            "last_message_at": case((newer, excluded.last_message_at), else_=Thread.last_message_at),
            "unread": or_(Thread.unread, excluded.unread),
            "updated_at": now,
        },
    )
    session.execute(stmt)
    thread_pk = session.scalars(
        select(Thread.id)
        .where(Thread.tenant_id == tenant_id)
        .where(Thread.provider_thread_id == message.provider_thread_id)
    ).first()
    if thread_pk is None:
        raise PersistenceError(f"Failed to create or fetch thread {message.provider_thread_id}")
    return thread_pk


def _message_exists(session: Session, tenant_id: str, provider_message_id: str) -> bool:
    return (
        session.scalars(
            select(Message.id)
            .where(Message.tenant_id == tenant_id)
            .where(Message.provider_message_id == provider_message_id)
        ).first()
        is not None
    )


def ingest_message(tenant_id: str, account_email: str, message: ParsedMessage) -> bool:
    """Store one provider message and its thread. Returns True if a new Message row was written.

    Re-ingesting a known provider message id is a no-op: the message content is immutable
    and its thread is left untouched.
    """
    try:
        with tenant_session(tenant_id) as session:
            if _message_exists(session, tenant_id, message.provider_message_id):
                logger.debug("messages.ingest.duplicate", message_id=message.provider_message_id)
                return False

            outbound = is_outbound(message.from_header or message.from_email, account_email)
            sent_at = _as_utc(message.sent_at)
            thread_pk = _upsert_thread(session, tenant_id, message, sent_at, outbound)

            insert = _insert_for(session)
            now = datetime.now(timezone.utc)
            stmt = (
                insert(Message)
                .values(
                    tenant_id=tenant_id,
                    thread_id=thread_pk,
                    provider_message_id=message.provider_message_id,
                    from_email=message.from_email,
                    to_emails_json=json.dumps(message.to_emails),
                    sent_at=sent_at,
                    snippet=message.snippet,
                    body=message.body,
                    is_outbound=outbound,
                    created_at=now,
                    updated_at=now,
                )
                .on_conflict_do_nothing(index_elements=[Message.tenant_id, Message.provider_message_id])
            )
            inserted = session.execute(stmt).rowcount == 1
            logger.debug(
                "messages.ingest.stored" if inserted else "messages.ingest.race_duplicate",
                message_id=message.provider_message_id,
                thread_id=message.provider_thread_id,
                outbound=outbound,
            )
            return inserted
    except SQLAlchemyError as e:
        raise PersistenceError(
            f"Failed to ingest message {message.provider_message_id} for tenant {tenant_id}: {e}"
        ) from e


def get_message(tenant_id: str, provider_message_id: str) -> Optional[Message]:
    """Return the message row for this provider id in the tenant, or None."""
    with tenant_session(tenant_id) as session:
        row = session.scalars(
            select(Message)
            .where(Message.tenant_id == tenant_id)
            .where(Message.provider_message_id == provider_message_id)
        ).first()
        if row is not None:
            session.expunge(row)
        return row


def get_thread(tenant_id: str, provider_thread_id: str) -> Optional[Thread]:
    """Return the thread row for this provider conversation id in the tenant, or None."""
    with tenant_session(tenant_id) as session:
        row = session.scalars(
            select(Thread)
            .where(Thread.tenant_id == tenant_id)
            .where(Thread.provider_thread_id == provider_thread_id)
        ).first()
        if row is not None:
            session.expunge(row)
        return row


def count_messages(tenant_id: str) -> int:
    with tenant_session(tenant_id) as session:
        return session.scalar(select(func.count(Message.id)).where(Message.tenant_id == tenant_id)) or 0


def count_threads(tenant_id: str) -> int:
    with tenant_session(tenant_id) as session:
        return session.scalar(select(func.count(Thread.id)).where(Thread.tenant_id == tenant_id)) or 0


def list_pending_analysis(tenant_id: str, limit: int = 50) -> list[Message]:
    """Inbound messages the external analyzer has not processed yet, oldest first."""
    with tenant_session(tenant_id) as session:
        rows = list(
            session.scalars(
                select(Message)
                .where(Message.tenant_id == tenant_id)
                .where(Message.analysis_json.is_(None))
                .where(Message.is_outbound.is_(False))
                .order_by(Message.sent_at.asc(), Message.id.asc())
                .limit(limit)
            ).all()
        )
        for row in rows:
            session.expunge(row)
        return rows


def save_analysis(tenant_id: str, provider_message_id: str, analysis: dict[str, Any]) -> bool:
    """Attach the analyzer's verdict to a message. Returns True if a row was updated."""
    with tenant_session(tenant_id) as session:
        result = session.execute(
            update(Message)
            .where(Message.tenant_id == tenant_id)
            .where(Message.provider_message_id == provider_message_id)
            .values(
                analysis_json=json.dumps(analysis, default=str),
                analyzed_at=datetime.now(timezone.utc),
            )
        )
        return result.rowcount == 1
