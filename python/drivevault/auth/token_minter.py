"""
drivevault/auth/token_minter.py

Exchanges signed JWT assertions for OAuth2 Bearer tokens and caches the
current token in memory until it comes within the expiry buffer.

Cache states: Empty -> (mint) -> Cached(token) -> (buffer reached) -> mint again.
clear_token_cache() returns to Empty from any state. The check-and-mint
sequence runs under an asyncio.Lock so concurrent callers never mint twice.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional, Type

import aiohttp

from drivevault.auth.jwt import sign_assertion
from drivevault.errors import AuthExchangeError, MalformedResponseError
from drivevault.models.credentials import Credential
from drivevault.models.settings import DriveSettings
from drivevault.models.tokens import AccessToken, TokenResponse
from drivevault.models.validator import validate_type

logger = logging.getLogger(__name__)

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
DEFAULT_EXPIRES_IN = 3600


class TokenMinter:
    """Mints and caches OAuth2 access tokens for a service account.

    One instance per process; the token cache is only reachable through
    get_cached_access_token() and clear_token_cache().
    """

    def __init__(
        self,
        settings: DriveSettings,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the TokenMinter.

        Args:
            settings (DriveSettings): Token endpoint, scope, expiry buffer, verify_ssl.
            session (Optional[aiohttp.ClientSession]): Shared session; one is
                created lazily (and owned) if not given.
            clock (Callable[[], float]): Returns epoch seconds.
        """
        self._token_uri = settings.token_uri
        self._scope = settings.scope
        self._verify_ssl = settings.verify_ssl
        self._buffer_ms = int(settings.expiry_buffer_seconds * 1000)
        self._clock = clock

        self._session = session
        self._owns_session = session is None
        self._cached_token: Optional[AccessToken] = None
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> TokenMinter:
        await self.ensure_session()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        await self.close()

    async def ensure_session(self) -> aiohttp.ClientSession:
        """Ensure an aiohttp session is available, creating one if needed."""
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the session if this instance created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def sign_assertion(self, credential: Credential) -> str:
        """Mint a fresh single-use JWT assertion for the token endpoint."""
        return sign_assertion(
            credential,
            scope=self._scope,
            audience=self._token_uri,
            clock=self._clock,
        )

    async def exchange_for_token(self, jwt: str) -> AccessToken:
        """POST the assertion to the token endpoint and return the access token.

        Raises:
            AuthExchangeError: If the endpoint answers with a non-2xx status.
            MalformedResponseError: If the reply has no access_token or its
                fields have the wrong types.
            aiohttp.ClientError: On network failure.
        """
        session = await self.ensure_session()
        form = {"grant_type": JWT_BEARER_GRANT, "assertion": jwt}
        async with session.post(
            self._token_uri, data=form, ssl=self._verify_ssl
        ) as resp:
            if not 200 <= resp.status < 300:
                body = await resp.text()
                logger.error("OAuth2 token request failed: %s", resp.status)
                raise AuthExchangeError(resp.status, body)
            try:
                raw_js = await resp.json(content_type=None)
                js = validate_type(raw_js, Dict[str, Any])
            except ValueError as exc:
                raise MalformedResponseError(
                    "Invalid OAuth2 response - body is not a JSON object"
                ) from exc

        if not js.get("access_token"):
            raise MalformedResponseError("Invalid OAuth2 response - no access token")
        try:
            reply = validate_type(js, TokenResponse)
        except ValueError as exc:
            raise MalformedResponseError(
                "Invalid OAuth2 response - unexpected field types"
            ) from exc

        expires_in = reply.expires_in or DEFAULT_EXPIRES_IN
        token = AccessToken(
            access_token=reply.access_token,
            token_type=reply.token_type or "Bearer",
            expires_in=expires_in,
            expires_at=self._now_ms() + expires_in * 1000,
        )
        logger.info("Access token obtained, expires in %s seconds", token.expires_in)
        return token

    async def get_access_token(self, credential: Credential) -> AccessToken:
        """Mint a brand new token, bypassing the cache (sign, then exchange)."""
        return await self.exchange_for_token(self.sign_assertion(credential))

    async def get_cached_access_token(self, credential: Credential) -> AccessToken:
        """Return the cached token, or mint and cache a new one if it is near expiry.

        On any failure while minting, the cache is cleared and the error propagates.
        """
        async with self._lock:
            cached = self._cached_token
            if cached is not None and cached.is_fresh(self._now_ms(), self._buffer_ms):
                logger.debug("Using cached access token")
                return cached

            logger.info("Generating fresh access token")
            try:
                self._cached_token = await self.get_access_token(credential)
            except BaseException:
                self._cached_token = None
                raise
            return self._cached_token

    def clear_token_cache(self) -> None:
        """Drop the cached token. Idempotent."""
        self._cached_token = None
        logger.info("Access token cache cleared")
