"""Shared fixtures for the test modules: temp SQLite database, Gmail payload builders."""

import base64
import os
import sys
import tempfile
import unittest
from pathlib import Path
from typing import Optional

# Allow importing mailsync when running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from mailsync.auth.token_vault import TokenVault
from mailsync.db import dispose_db, init_db

VAULT_KEY = bytes(range(32))


def make_vault() -> TokenVault:
    return TokenVault(VAULT_KEY)


def b64url(text: str) -> str:
    """Gmail-style unpadded base64url."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def gmail_message(
    message_id: str,
    thread_id: str,
    subject: str = "Hello",
    sender: str = "Alice <alice@example.com>",
    to: str = "me@example.com",
    internal_ms: int = 1_700_000_000_000,
    body: str = "Hi there",
    snippet: Optional[str] = None,
) -> dict:
    """Full-format Gmail message with a multipart/alternative payload."""
    return {
        "id": message_id,
        "threadId": thread_id,
        "labelIds": ["INBOX"],
        "snippet": snippet if snippet is not None else body[:40],
        "internalDate": str(internal_ms),
        "payload": {
            "mimeType": "multipart/alternative",
            "headers": [
                {"name": "From", "value": sender},
                {"name": "To", "value": to},
                {"name": "Subject", "value": subject},
            ],
            "body": {"size": 0},
            "parts": [
                {"partId": "0", "mimeType": "text/plain", "body": {"data": b64url(body)}},
                {"partId": "1", "mimeType": "text/html", "body": {"data": b64url(f"<p>{body}</p>")}},
            ],
        },
    }


class DatabaseTestCase(unittest.TestCase):
    """Fresh SQLite file per test (in-memory databases are per-connection)."""

    def setUp(self):
        fd, path = tempfile.mkstemp(suffix=".sqlite")
        os.close(fd)
        self._db_path = Path(path)
        init_db(f"sqlite:///{path}")

    def tearDown(self):
        dispose_db()
        self._db_path.unlink(missing_ok=True)
