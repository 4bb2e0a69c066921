"""Short-lived bearer tokens minted from the sealed refresh token, cached per (tenant, user).

The cache lives in process memory only. A restart costs one extra token exchange per
account; nothing needs tearing down.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import httpx

from mailsync.auth.token_vault import TokenVault, get_vault
from mailsync.config import (
    FETCH_BASE_DELAY,
    FETCH_MAX_ATTEMPTS,
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_TOKEN_URL,
    TOKEN_SAFETY_WINDOW_SECONDS,
)
from mailsync.db.repositories.account_repo import get_encrypted_refresh_token
from mailsync.errors import ConfigurationError, CredentialMissingError, DecryptionError, UpstreamAuthError
from mailsync.mail_provider.retry import Sleep, fetch_with_retry
from mailsync.utils.logger import get_logger

logger = get_logger("mailsync.auth.token_broker")

CredentialLoader = Callable[[str, str], Optional[bytes]]


@dataclass(frozen=True)
class CachedAccessToken:
    token: str
    expires_at: float  # epoch seconds, safety window already subtracted


class AccessTokenCache:
    """(tenant, user) -> bearer token. Reads take no lock; writes overwrite (last writer wins)."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], CachedAccessToken] = {}

    def get(self, tenant_id: str, user_id: str, now: float) -> Optional[CachedAccessToken]:
        entry = self._entries.get((tenant_id, user_id))
        if entry is not None and now < entry.expires_at:
            return entry
        return None

    def put(self, tenant_id: str, user_id: str, entry: CachedAccessToken) -> None:
        self._entries[(tenant_id, user_id)] = entry

    def invalidate(self, tenant_id: str, user_id: str) -> None:
        self._entries.pop((tenant_id, user_id), None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


# Process-lifetime cache shared by every broker that is not handed its own.
_process_cache = AccessTokenCache()


def get_process_cache() -> AccessTokenCache:
    return _process_cache


class AccessTokenBroker:
    """Exchanges the stored refresh token for a bearer token at the OAuth token endpoint."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        vault: Optional[TokenVault] = None,
        credential_loader: CredentialLoader = get_encrypted_refresh_token,
        client_id: str = GOOGLE_CLIENT_ID,
        client_secret: str = GOOGLE_CLIENT_SECRET,
        token_url: str = GOOGLE_TOKEN_URL,
        safety_window_seconds: float = TOKEN_SAFETY_WINDOW_SECONDS,
        cache: Optional[AccessTokenCache] = None,
        clock: Callable[[], float] = time.time,
        max_attempts: int = FETCH_MAX_ATTEMPTS,
        base_delay: float = FETCH_BASE_DELAY,
        sleep: Sleep = asyncio.sleep,
    ):
        self._http = http_client
        self._vault = vault
        self._credential_loader = credential_loader
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url
        self._safety_window = safety_window_seconds
        self._cache = cache if cache is not None else get_process_cache()
        self._clock = clock
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._sleep = sleep

    @property
    def cache(self) -> AccessTokenCache:
        return self._cache

    async def get_access_token(self, tenant_id: str, user_id: str) -> str:
        """Return a bearer token for the account, exchanging the refresh token when needed."""
        if not tenant_id or not user_id:
            raise ValueError("get_access_token requires both tenant_id and user_id")

        cached = self._cache.get(tenant_id, user_id, self._clock())
        if cached is not None:
            return cached.token

        refresh_token = await self._load_refresh_token(tenant_id, user_id)
        token, expires_in = await self._exchange(refresh_token, tenant_id, user_id)

        ttl = max(0.0, float(expires_in) - self._safety_window)
        self._cache.put(tenant_id, user_id, CachedAccessToken(token=token, expires_at=self._clock() + ttl))
        logger.info("token_broker.exchanged", tenant_id=tenant_id, user_id=user_id, ttl_seconds=int(ttl))
        return token

    def invalidate(self, tenant_id: str, user_id: str) -> None:
        """Drop the cached token (e.g. after the mailbox API answered 401)."""
        self._cache.invalidate(tenant_id, user_id)

    async def _load_refresh_token(self, tenant_id: str, user_id: str) -> str:
        blob = await asyncio.to_thread(self._credential_loader, tenant_id, user_id)
        if blob is None:
            raise CredentialMissingError(
                f"No mailbox refresh token is stored for user {user_id} in tenant {tenant_id}"
            )
        vault = self._vault or get_vault()
        try:
            refresh_token = vault.open(blob)
        except DecryptionError as e:
            raise DecryptionError(
                f"Unable to decrypt refresh token for user {user_id} in tenant {tenant_id}: {e}"
            ) from e
        if not refresh_token:
            raise CredentialMissingError(
                f"Decrypted refresh token is empty for user {user_id} in tenant {tenant_id}"
            )
        return refresh_token

    async def _exchange(self, refresh_token: str, tenant_id: str, user_id: str) -> tuple[str, float]:
        if not self._client_id or not self._client_secret:
            raise ConfigurationError("OAuth client credentials (GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET) are not configured")

        request = self._http.build_request(
            "POST",
            self._token_url,
            data={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            },
        )
        response = await fetch_with_retry(
            self._http,
            request,
            max_attempts=self._max_attempts,
            base_delay=self._base_delay,
            sleep=self._sleep,
        )

        try:
            payload: Any = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            raise UpstreamAuthError(
                f"Token endpoint returned invalid JSON for tenant {tenant_id}, user {user_id}",
                status=response.status_code,
            )

        if not response.is_success:
            error_code = payload.get("error") if isinstance(payload.get("error"), str) else None
            description = payload.get("error_description") if isinstance(payload.get("error_description"), str) else None
            logger.warning(
                "token_broker.rejected",
                tenant_id=tenant_id,
                user_id=user_id,
                status=response.status_code,
                error=error_code,
            )
            raise UpstreamAuthError(
                f"Token refresh failed for tenant {tenant_id}, user {user_id} "
                f"(status {response.status_code}: {error_code or description or 'unknown_error'})",
                status=response.status_code,
                error_code=error_code,
            )

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise UpstreamAuthError(
                f"Token response missing access_token for tenant {tenant_id}, user {user_id}",
                status=response.status_code,
            )
        expires_in = payload.get("expires_in")
        if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)):
            raise UpstreamAuthError(
                f"Token response missing valid expires_in for tenant {tenant_id}, user {user_id}",
                status=response.status_code,
            )
        return access_token, float(expires_in)
