#!/usr/bin/env python3
"""Async client for the Microsoft Graph REST API.

GraphClient owns the aiohttp session and the bearer token, and turns every
non-2xx answer into a typed AutopilotError. What to read or write lives in
AutopilotDeviceSyncer and DeviceManager, which compose this client.

Request handling:
    - 401: the cached token is dropped and the request repeated once fresh
    - 429: wait for Retry-After, then repeat
    - 5xx and transport errors: exponential backoff, capped at 60s
    - other 4xx: raised immediately, Graph's error.message included
    - a circuit breaker stops a run from retrying against an outage

Collections are read with @odata.nextLink paging:

    async with GraphClient(token_manager) as client:
        devices = await client.fetch_all("/deviceManagement/windowsAutopilotDeviceIdentities")
"""
import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

import aiohttp

from .auth import TokenManager
from .exceptions import (
    APIError,
    AutopilotError,
    ConnectionError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
    TimeoutError,
    TokenExpiredError,
    ValidationError,
)
from .resilience import CircuitBreaker

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://graph.microsoft.com/v1.0"
REQUEST_TIMEOUT_SECONDS = 60
MAX_BACKOFF_SECONDS = 60.0

# Statuses with a dedicated error class; other 4xx become APIError, 5xx ServerError
STATUS_ERRORS: dict[int, type[APIError]] = {
    400: ValidationError,
    404: NotFoundError,
    422: ValidationError,
}

# Failures that say Graph itself is unhealthy
BREAKER_FAILURES = (ServerError, NetworkError, RateLimitError)


@dataclass
class PaginationConfig:
    """How a Graph collection is paged.

    Attributes:
        page_size: Value sent as $top (Graph may return fewer)
        delay_between_pages: Seconds to wait between requests
        max_pages: Stop after this many pages (None = follow every nextLink)
    """
    page_size: int = 100
    delay_between_pages: float = 0.0
    max_pages: Optional[int] = None


AUTOPILOT_PAGINATION = PaginationConfig(
    page_size=500,
    delay_between_pages=0.2,
    max_pages=None,
)


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Seconds from a Retry-After header; None when absent or not an integer."""
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class GraphClient:
    """Async HTTP client for Microsoft Graph, used as an async context manager."""

    def __init__(
        self,
        token_manager: TokenManager,
        base_url: Optional[str] = None,
        enable_circuit_breaker: bool = True,
        circuit_failure_threshold: int = 5,
        circuit_timeout: float = 60.0,
        max_retries: int = 3,
    ):
        """
        Args:
            token_manager: Supplies bearer tokens
            base_url: API root. Falls back to GRAPH_BASE_URL, then the v1.0 endpoint.
            enable_circuit_breaker: Guard requests with a CircuitBreaker
            circuit_failure_threshold: Failed requests before the circuit opens
            circuit_timeout: Seconds an open circuit waits before a trial request
            max_retries: Attempts per request, first one included
        """
        self.token_manager = token_manager
        self.base_url = (base_url or os.getenv("GRAPH_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.max_retries = max(1, max_retries)

        self._session: Optional[aiohttp.ClientSession] = None
        self._circuit_breaker: Optional[CircuitBreaker] = None
        if enable_circuit_breaker:
            self._circuit_breaker = CircuitBreaker(
                failure_threshold=circuit_failure_threshold,
                timeout=circuit_timeout,
                name="graph_api",
            )

    async def __aenter__(self) -> "GraphClient":
        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=10, limit_per_host=10),
            timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT_SECONDS, connect=10),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    # ----------------------------------------
    # One HTTP exchange
    # ----------------------------------------

    def _build_url(self, endpoint: str) -> str:
        # nextLink values are absolute URLs
        if endpoint.startswith("http://") or endpoint.startswith("https://"):
            return endpoint
        return f"{self.base_url}{endpoint}"

    async def _get_auth_headers(self) -> dict[str, str]:
        token = await self.token_manager.get_token()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
    ) -> dict[str, Any]:
        """Send one request and decode the answer; no retries here.

        Returns an empty dict for 202/204 and empty bodies.
        """
        if not self._session:
            raise RuntimeError(
                "GraphClient must be used as async context manager: "
                "async with GraphClient(...) as client:"
            )

        try:
            headers = await self._get_auth_headers()

            async with self._session.request(
                method=method,
                url=self._build_url(endpoint),
                headers=headers,
                params=params,
                json=json_body,
            ) as response:
                if response.status >= 400:
                    raise self._create_api_error(
                        status=response.status,
                        method=method,
                        endpoint=endpoint,
                        response_body=await response.text(),
                        retry_after=response.headers.get("Retry-After"),
                    )

                if response.status in (202, 204) or response.content_length == 0:
                    return {}

                try:
                    return await response.json()
                except (aiohttp.ContentTypeError, ValueError) as e:
                    raise APIError(
                        f"Graph returned a non-JSON body for {method} {endpoint}",
                        status_code=response.status,
                        endpoint=endpoint,
                        method=method,
                        cause=e,
                    ) from e

        except aiohttp.ClientConnectionError as e:
            raise ConnectionError(
                f"Failed to connect to {self.base_url}",
                host=self.base_url,
                cause=e,
            ) from e

        except asyncio.TimeoutError as e:
            raise TimeoutError(
                f"Request to {endpoint} timed out",
                timeout_seconds=REQUEST_TIMEOUT_SECONDS,
                cause=e,
            ) from e

        except aiohttp.ClientError as e:
            raise NetworkError(f"Network error during {method} {endpoint}: {e}", cause=e) from e

    def _create_api_error(
        self,
        status: int,
        method: str,
        endpoint: str,
        response_body: str,
        retry_after: Optional[str] = None,
    ) -> AutopilotError:
        """Map an error status to its exception; Graph's error text rides along."""
        if status == 401:
            return TokenExpiredError(details={"endpoint": endpoint})

        context = {
            "status_code": status,
            "endpoint": endpoint,
            "method": method,
            "response_body": response_body,
        }

        if status == 429:
            return RateLimitError(
                f"Graph throttled {method} {endpoint}",
                retry_after=parse_retry_after(retry_after),
                **context,
            )

        error_class = STATUS_ERRORS.get(status) or (ServerError if status >= 500 else APIError)
        return error_class(f"{method} {endpoint} failed with HTTP {status}", **context)

    # ----------------------------------------
    # Retry and circuit breaker
    # ----------------------------------------

    async def _send_with_retries(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict],
        json_body: Optional[dict],
    ) -> dict[str, Any]:
        backoff_delay = 1.0
        attempt = 0

        while True:
            attempt += 1
            out_of_attempts = attempt >= self.max_retries
            try:
                return await self._request(method, endpoint, params, json_body)

            except TokenExpiredError:
                if out_of_attempts:
                    raise
                logger.warning(f"Token rejected by Graph, refreshing (attempt {attempt})")
                self.token_manager.invalidate()

            except RateLimitError as e:
                if out_of_attempts:
                    raise
                logger.warning(
                    f"Throttled, waiting {e.retry_after}s (attempt {attempt}/{self.max_retries})"
                )
                await asyncio.sleep(e.retry_after)

            except (ServerError, NetworkError) as e:
                if out_of_attempts:
                    raise
                logger.warning(
                    f"{e.message}. Retrying in {backoff_delay}s "
                    f"(attempt {attempt}/{self.max_retries})"
                )
                await asyncio.sleep(backoff_delay)
                backoff_delay = min(backoff_delay * 2, MAX_BACKOFF_SECONDS)

    async def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
    ) -> dict[str, Any]:
        """Send a request through the circuit breaker, retrying transient errors.

        A request that ends in a server, network or throttling error counts
        as one breaker failure. A 4xx answer means Graph is reachable and
        leaves the breaker alone.

        Raises:
            CircuitOpenError: If the circuit is open
            AutopilotError: The last error once retries are exhausted
        """
        breaker = self._circuit_breaker
        if breaker:
            await breaker.before_call()

        try:
            result = await self._send_with_retries(method, endpoint, params, json_body)
        except BREAKER_FAILURES as e:
            if breaker:
                await breaker.record_failure(e)
            raise

        if breaker:
            await breaker.record_success()
        return result

    # ----------------------------------------
    # Public API
    # ----------------------------------------

    async def get(self, endpoint: str, params: Optional[dict] = None) -> dict[str, Any]:
        return await self._request_with_retry("GET", endpoint, params=params)

    async def post(
        self,
        endpoint: str,
        json_body: dict,
        params: Optional[dict] = None,
    ) -> dict[str, Any]:
        return await self._request_with_retry("POST", endpoint, params=params, json_body=json_body)

    async def paginate(
        self,
        endpoint: str,
        config: Optional[PaginationConfig] = None,
        params: Optional[dict] = None,
    ) -> AsyncIterator[list[dict]]:
        """Iterate through a Graph collection one page at a time.

        The first request carries $top plus any caller params; later
        requests follow @odata.nextLink verbatim, since the link already
        encodes the query and skip token.
        """
        config = config or PaginationConfig()
        first_params = dict(params or {})
        first_params.setdefault("$top", config.page_size)

        next_link: Optional[str] = endpoint
        request_params: Optional[dict] = first_params
        pages_fetched = 0
        fetched_count = 0

        while next_link:
            data = await self.get(next_link, params=request_params)
            items = data.get("value", [])

            if items:
                yield items

            pages_fetched += 1
            fetched_count += len(items)
            logger.debug(f"Progress: {fetched_count:,} items after {pages_fetched} pages")

            next_link = data.get("@odata.nextLink")
            request_params = None

            if config.max_pages and pages_fetched >= config.max_pages:
                logger.info(f"Reached max_pages limit ({config.max_pages})")
                break

            if next_link and config.delay_between_pages > 0:
                await asyncio.sleep(config.delay_between_pages)

        logger.info(f"Pagination complete: {fetched_count:,} items in {pages_fetched} pages")

    async def fetch_all(
        self,
        endpoint: str,
        config: Optional[PaginationConfig] = None,
        params: Optional[dict] = None,
    ) -> list[dict]:
        """Fetch every item of a paginated collection into one list."""
        all_items = []
        async for page in self.paginate(endpoint, config, params):
            all_items.extend(page)
        return all_items
