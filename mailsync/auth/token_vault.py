"""AES-256-GCM sealing of long-lived mailbox credentials before they are persisted.

Blob layout: nonce (12 bytes) || tag (16 bytes) || ciphertext. Everything needed to
open a blob except the key travels inside it.
"""

import base64
import binascii
import os
import threading
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from mailsync.config import TOKEN_VAULT_KEY_ENV
from mailsync.errors import ConfigurationError, DecryptionError

NONCE_LENGTH = 12
TAG_LENGTH = 16
KEY_LENGTH = 32

_key_lock = threading.Lock()
_cached_key: Optional[bytes] = None


def decode_key(raw_key: str) -> bytes:
    """Decode a base64 key and check it is exactly KEY_LENGTH bytes."""
    try:
        decoded = base64.b64decode((raw_key or "").strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError(f"{TOKEN_VAULT_KEY_ENV} must be valid base64") from e
    if len(decoded) != KEY_LENGTH:
        raise ConfigurationError(f"{TOKEN_VAULT_KEY_ENV} must decode to {KEY_LENGTH} bytes")
    return decoded


def load_vault_key() -> bytes:
    """Read the key from the environment once and cache it for the process lifetime."""
    global _cached_key
    if _cached_key is not None:
        return _cached_key
    with _key_lock:
        if _cached_key is None:
            raw_key = os.getenv(TOKEN_VAULT_KEY_ENV)
            if not raw_key:
                raise ConfigurationError(f"Environment variable {TOKEN_VAULT_KEY_ENV} is required for the token vault")
            _cached_key = decode_key(raw_key)
    return _cached_key


def clear_key_cache() -> None:
    """Forget the cached key (key rotation, tests)."""
    global _cached_key
    with _key_lock:
        _cached_key = None


def generate_key() -> str:
    """Return a fresh random key, base64 encoded, suitable for TOKEN_VAULT_KEY."""
    return base64.b64encode(AESGCM.generate_key(bit_length=KEY_LENGTH * 8)).decode("ascii")


class TokenVault:
    """Seal/open credentials with one AES-256-GCM key."""

    def __init__(self, key: Optional[bytes] = None):
        if key is not None and len(key) != KEY_LENGTH:
            raise ConfigurationError(f"Token vault key must be {KEY_LENGTH} bytes")
        self._key = key

    @property
    def _aead(self) -> AESGCM:
        return AESGCM(self._key if self._key is not None else load_vault_key())

    def seal(self, plaintext: str) -> bytes:
        if not isinstance(plaintext, str):
            raise TypeError("TokenVault.seal expects a string")
        nonce = os.urandom(NONCE_LENGTH)
        # AESGCM returns ciphertext || tag
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return nonce + tag + ciphertext

    def open(self, blob: bytes) -> str:
        if not isinstance(blob, (bytes, bytearray, memoryview)):
            raise DecryptionError("TokenVault.open expects bytes")
        blob = bytes(blob)
        if len(blob) < NONCE_LENGTH + TAG_LENGTH:
            raise DecryptionError("TokenVault.open received malformed payload (too short)")
        nonce = blob[:NONCE_LENGTH]
        tag = blob[NONCE_LENGTH:NONCE_LENGTH + TAG_LENGTH]
        ciphertext = blob[NONCE_LENGTH + TAG_LENGTH:]
        try:
            plain = self._aead.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            raise DecryptionError("TokenVault.open failed authentication (tampered or wrong key)") from e
        try:
            return plain.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError("TokenVault.open produced non-UTF-8 plaintext") from e


_default_vault: Optional[TokenVault] = None


def get_vault() -> TokenVault:
    """Process-wide vault using the key from TOKEN_VAULT_KEY."""
    global _default_vault
    if _default_vault is None:
        _default_vault = TokenVault()
    return _default_vault


def seal(plaintext: str) -> bytes:
    return get_vault().seal(plaintext)


def open_blob(blob: bytes) -> str:
    return get_vault().open(blob)
