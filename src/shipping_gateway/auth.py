"""
Client-credentials token acquisition against the Microsoft identity platform.

A fresh bearer token is requested for every pipeline run. When the optional
``TokenCache`` is enabled, tokens are reused until shortly before they
expire; failed exchanges are never cached, so authentication errors still
surface on the request that triggered them.

Tokens are secrets: they are never logged and never returned to callers.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import httpx

from .configuration import GraphSettings
from .errors import AuthError
from .utils import response_details

logger = logging.getLogger(__name__)

# Seconds subtracted from expires_in so a cached token is not used at its edge
EXPIRY_SKEW_SECONDS = 60

CacheKey = Tuple[str, str, str]


@dataclass
class CachedToken:
    value: str
    expires_at: float


class TokenCache:
    """
    Expiry-aware token store keyed by (tenant, client id, scope).

    Tokens are immutable once issued, so concurrent requests can share an
    entry without locking; at worst two requests race to refresh it.
    """

    def __init__(self, clock=time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[CacheKey, CachedToken] = {}

    def get(self, key: CacheKey) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return entry.value

    def put(self, key: CacheKey, token: str, expires_in: float) -> None:
        lifetime = max(float(expires_in) - EXPIRY_SKEW_SECONDS, 0.0)
        if lifetime <= 0:
            return
        self._entries[key] = CachedToken(value=token, expires_at=self._clock() + lifetime)

    def invalidate(self, key: CacheKey) -> None:
        self._entries.pop(key, None)


class CredentialProvider:
    """Exchanges the configured service credentials for a bearer token."""

    def __init__(
        self,
        settings: GraphSettings,
        cache: Optional[TokenCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self.cache = cache
        self._transport = transport

    @property
    def token_url(self) -> str:
        authority = self.settings.authority.rstrip("/")
        return f"{authority}/{self.settings.tenant_id}/oauth2/v2.0/token"

    def discard_token(self) -> None:
        """Forget the cached token, if any, so the next call exchanges again."""
        if self.cache is not None:
            self.cache.invalidate(self.cache_key)

    @property
    def cache_key(self) -> CacheKey:
        return (self.settings.tenant_id, self.settings.client_id, self.settings.scope)

    async def acquire_token(self) -> str:
        """
        Perform the client-credentials grant and return the access token.

        Raises:
            AuthError: If the endpoint rejects the credentials, cannot be
                reached, or answers without an access token
        """
        if self.cache is not None:
            cached = self.cache.get(self.cache_key)
            if cached is not None:
                return cached

        form = {
            "client_id": self.settings.client_id,
            "client_secret": self.settings.client_secret,
            "grant_type": "client_credentials",
            "scope": self.settings.scope,
        }

        try:
            async with httpx.AsyncClient(timeout=self.settings.timeout_seconds, transport=self._transport) as client:
                response = await client.post(self.token_url, data=form)
        except httpx.HTTPError as exc:
            logger.error(f"Token endpoint unreachable for tenant {self.settings.tenant_id}: {exc}")
            raise AuthError(f"Token endpoint unreachable: {exc}") from exc

        if response.status_code != 200:
            details = response_details(response)
            logger.error(f"Token request rejected with HTTP {response.status_code}")
            raise AuthError("Token request rejected", details)

        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthError("Token response was not valid JSON", response.text) from exc

        token = payload.get("access_token")
        if not token:
            raise AuthError("Token response did not contain an access_token")

        if self.cache is not None and payload.get("expires_in"):
            self.cache.put(self.cache_key, token, payload["expires_in"])

        logger.debug(f"Acquired access token for tenant {self.settings.tenant_id}")
        return token
