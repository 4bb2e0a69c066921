"""Gmail message payload -> ParsedMessage."""

import base64
import binascii
from datetime import datetime, timezone
from email.utils import getaddresses, parseaddr
from typing import Iterator, Optional

from mailsync.mail_provider.gmail_models import GmailMessage, GmailMessagePart
from mailsync.models.email import ParsedMessage
from mailsync.utils.body_text import body_to_text


def _header(message: GmailMessage, name: str) -> str:
    """Header value by case-insensitive name, empty string when absent."""
    if message.payload is None:
        return ""
    wanted = name.lower()
    for header in message.payload.headers:
        if header.name.lower() == wanted:
            return header.value or ""
    return ""


def decode_base64url(data: Optional[str]) -> Optional[str]:
    """Decode Gmail's unpadded base64url body data to text (None if undecodable)."""
    if not data:
        return None
    padded = data + "=" * (-len(data) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError):
        return None
    return raw.decode("utf-8", errors="replace")


def _walk_parts(part: GmailMessagePart) -> Iterator[GmailMessagePart]:
    """Depth-first over nested MIME parts (the root part excluded)."""
    for child in part.parts:
        yield child
        yield from _walk_parts(child)


def _first_part_text(root: GmailMessagePart, mime_type: str) -> Optional[str]:
    for part in _walk_parts(root):
        if (part.mimeType or "").lower() != mime_type:
            continue
        text = decode_base64url(part.body.data if part.body else None)
        if text:
            return text
    return None


def extract_body(message: GmailMessage) -> str:
    """Plain-text body: payload body, then text/plain part, then text/html part, then snippet."""
    snippet = message.snippet or ""
    payload = message.payload
    if payload is None:
        return snippet

    root_text = decode_base64url(payload.body.data if payload.body else None)
    if root_text:
        content_type = "html" if (payload.mimeType or "").lower() == "text/html" else "text"
        return body_to_text(root_text, content_type) or snippet

    plain = _first_part_text(payload, "text/plain")
    if plain:
        return body_to_text(plain) or snippet

    html = _first_part_text(payload, "text/html")
    if html:
        return body_to_text(html, "html") or snippet

    return snippet


def parse_internal_date(value: Optional[str]) -> datetime:
    """internalDate (epoch ms as string) -> aware UTC datetime; now when missing or invalid."""
    if value:
        try:
            return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            pass
    return datetime.now(timezone.utc)


def gmail_message_to_parsed(message: GmailMessage) -> ParsedMessage:
    """Map a full Gmail message to the provider-neutral shape the upsert layer stores."""
    from_header = _header(message, "From")
    _, from_email = parseaddr(from_header)
    to_emails = [addr for _, addr in getaddresses([_header(message, "To")]) if addr]

    return ParsedMessage(
        provider_message_id=message.id,
        provider_thread_id=message.threadId,
        subject=_header(message, "Subject"),
        from_header=from_header,
        from_email=from_email.lower(),
        to_emails=to_emails,
        sent_at=parse_internal_date(message.internalDate),
        snippet=message.snippet or "",
        body=extract_body(message),
    )
