"""Credential protection and bearer token minting."""

from mailsync.auth.token_broker import AccessTokenBroker, AccessTokenCache, CachedAccessToken, get_process_cache
from mailsync.auth.token_vault import TokenVault, generate_key, get_vault

__all__ = [
    "AccessTokenBroker",
    "AccessTokenCache",
    "CachedAccessToken",
    "get_process_cache",
    "TokenVault",
    "generate_key",
    "get_vault",
]
