#!/usr/bin/env python3
"""App-only access tokens for Microsoft Graph.

The naming tool authenticates as an Entra ID app registration with the
client credentials grant. The registration needs the
DeviceManagementServiceConfig.ReadWrite.All application permission.

Settings (environment or .env):
    AUTOPILOT_TENANT_ID       tenant GUID or verified domain
    AUTOPILOT_CLIENT_ID       app registration id
    AUTOPILOT_CLIENT_SECRET   app registration secret
    AUTOPILOT_TOKEN_URL       optional, overrides the tenant-derived endpoint
    AUTOPILOT_SCOPE           optional, defaults to the Graph .default scope

Tokens stay in memory and are refreshed shortly before they lapse. Log
lines name a token by a SHA-256 prefix, never by its value.
"""
import asyncio
import hashlib
import logging
import os
import random
import time
from dataclasses import dataclass
from typing import Optional

import aiohttp
from dotenv import load_dotenv

from .exceptions import (
    AutopilotError,
    ConfigurationError,
    ConnectionError,
    InvalidCredentialsError,
    NetworkError,
    TimeoutError,
    TokenFetchError,
)

load_dotenv()

logger = logging.getLogger(__name__)

TOKEN_URL_TEMPLATE = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"
DEFAULT_SCOPE = "https://graph.microsoft.com/.default"
TOKEN_REQUEST_TIMEOUT = 30


@dataclass
class CachedToken:
    """An access token and when it lapses (Unix time)."""
    access_token: str
    expires_at: float
    expires_in: int = 3599

    MAX_BUFFER_SECONDS = 300
    MIN_BUFFER_SECONDS = 30

    @property
    def token_id(self) -> str:
        return hashlib.sha256(self.access_token.encode()).hexdigest()[:8]

    @property
    def is_expired(self) -> bool:
        # Refresh 10% of the lifetime early (30s..5min), jittered by ±10%
        buffer = max(self.MIN_BUFFER_SECONDS, min(self.expires_in * 0.1, self.MAX_BUFFER_SECONDS))
        buffer += buffer * random.uniform(-0.1, 0.1)
        return time.time() >= self.expires_at - buffer


def is_transient(error: AutopilotError) -> bool:
    """Token failures worth another attempt: transport errors, 429 and 5xx."""
    if isinstance(error, NetworkError):
        return True
    if isinstance(error, TokenFetchError) and error.status_code is not None:
        return error.status_code == 429 or error.status_code >= 500
    return False


class TokenManager:
    """Client-credentials token source shared by every Graph request.

    Raises ConfigurationError on construction when the tenant, client id
    or secret is missing.
    """

    def __init__(
        self,
        tenant_id: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        token_url: Optional[str] = None,
        scope: Optional[str] = None,
    ):
        self.tenant_id = tenant_id or os.getenv("AUTOPILOT_TENANT_ID")
        self.client_id = client_id or os.getenv("AUTOPILOT_CLIENT_ID")
        self.client_secret = client_secret or os.getenv("AUTOPILOT_CLIENT_SECRET")
        self.scope = scope or os.getenv("AUTOPILOT_SCOPE") or DEFAULT_SCOPE

        token_url = token_url or os.getenv("AUTOPILOT_TOKEN_URL")
        if not token_url and self.tenant_id:
            token_url = TOKEN_URL_TEMPLATE.format(tenant_id=self.tenant_id)
        self.token_url = token_url

        missing = [
            key for key, value in (
                ("AUTOPILOT_TENANT_ID", self.token_url),
                ("AUTOPILOT_CLIENT_ID", self.client_id),
                ("AUTOPILOT_CLIENT_SECRET", self.client_secret),
            ) if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                missing_keys=missing,
            )

        self._cached_token: Optional[CachedToken] = None
        self._lock = asyncio.Lock()

    async def get_token(self) -> str:
        """Return a usable access token, fetching one when the cache is stale.

        Concurrent callers wait on one refresh.

        Raises:
            TokenFetchError: If no token could be obtained
            InvalidCredentialsError: If the identity platform rejects the app
        """
        if self._cached_token and not self._cached_token.is_expired:
            return self._cached_token.access_token

        async with self._lock:
            if self._cached_token is None or self._cached_token.is_expired:
                self._cached_token = await self._fetch_token()
            return self._cached_token.access_token

    def invalidate(self) -> None:
        """Drop the cached token so the next call fetches a fresh one."""
        self._cached_token = None

    async def _fetch_token(self, max_retries: int = 3) -> CachedToken:
        """Request a token, retrying transient failures after 1s, 2s, ..."""
        last_error: Optional[AutopilotError] = None

        for attempt in range(1, max_retries + 1):
            try:
                return await self._request_token()
            except (TokenFetchError, NetworkError) as e:
                if not is_transient(e):
                    raise
                last_error = e
                logger.warning(f"Token fetch attempt {attempt}/{max_retries} failed: {e.message}")

            if attempt < max_retries:
                await asyncio.sleep(2 ** (attempt - 1))

        raise TokenFetchError(
            f"Failed to fetch token after {max_retries} attempts",
            attempts=max_retries,
            cause=last_error,
        )

    async def _request_token(self) -> CachedToken:
        """One POST to the token endpoint."""
        payload = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": self.scope,
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.token_url,
                    data=payload,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                    timeout=aiohttp.ClientTimeout(total=TOKEN_REQUEST_TIMEOUT),
                ) as response:
                    if response.status != 200:
                        self._raise_for_token_error(response.status, await response.text())
                    data = await response.json()

        except aiohttp.ClientConnectionError as e:
            raise ConnectionError(
                f"Failed to connect to token endpoint: {e}", host=self.token_url, cause=e
            ) from e
        except asyncio.TimeoutError as e:
            raise TimeoutError(
                "Token request timed out", timeout_seconds=TOKEN_REQUEST_TIMEOUT, cause=e
            ) from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"Network error fetching token: {e}", cause=e) from e

        access_token = data.get("access_token")
        if not access_token:
            raise TokenFetchError(
                "Token response missing access_token",
                status_code=200,
                details={"response_keys": sorted(data)},
            )

        expires_in = int(data.get("expires_in", 3599))
        token = CachedToken(
            access_token=access_token,
            expires_at=time.time() + expires_in,
            expires_in=expires_in,
        )
        logger.info(f"Token fetched (id={token.token_id}), expires in {expires_in}s")
        return token

    @staticmethod
    def _raise_for_token_error(status: int, body: str) -> None:
        # AADSTS errors for a bad secret or unknown app come back as 400 or 401
        if status in (400, 401) and "invalid_client" in body:
            raise InvalidCredentialsError(details={"response": body[:200]})
        raise TokenFetchError(
            f"Token endpoint returned HTTP {status}: {body[:200]}",
            status_code=status,
        )
