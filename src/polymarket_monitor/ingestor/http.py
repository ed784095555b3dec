"""Shared async HTTP plumbing for the Polymarket API clients."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_REQUESTS_PER_SECOND = 10.0
TRANSIENT_STATUS_CODES = (429, 500, 502, 503, 504)


class ApiClientError(Exception):
    """Base exception for Polymarket API client errors."""


class ApiNotFoundError(ApiClientError):
    """Raised when a requested resource does not exist (e.g., 404)."""


class ApiTransientError(ApiClientError):
    """Raised for retryable/transient errors (e.g., 429/5xx, network issues)."""


class ApiResponseError(ApiClientError):
    """Raised when a response body does not have the expected shape."""


class RateLimiter:
    """Minimum-interval rate limiter for API requests."""

    def __init__(self, max_requests_per_second: float = MAX_REQUESTS_PER_SECOND) -> None:
        self._min_interval = 1.0 / max_requests_per_second
        self._last_request_time: float = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until a request slot is available."""
        async with self._lock:
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < self._min_interval:
                await asyncio.sleep(self._min_interval - elapsed)
            self._last_request_time = time.monotonic()


class BaseApiClient:
    """Rate-limited JSON GET client with a typed error taxonomy."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float,
        requests_per_second: float = MAX_REQUESTS_PER_SECOND,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._rate_limiter = RateLimiter(requests_per_second)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self: T) -> T:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``path`` and return the decoded JSON body.

        Raises:
            ApiNotFoundError: On HTTP 404.
            ApiTransientError: On 429/5xx, timeouts and connection failures.
            ApiClientError: On any other non-2xx status.
            ApiResponseError: If the body is not JSON.
        """
        query = {k: v for k, v in (params or {}).items() if v is not None}
        await self._rate_limiter.acquire()
        try:
            response = await self._client.get(path, params=query)
        except httpx.TimeoutException as e:
            raise ApiTransientError(f"Timeout calling {path}: {e}") from e
        except httpx.TransportError as e:
            raise ApiTransientError(f"Network error calling {path}: {e}") from e

        if response.status_code == 404:
            raise ApiNotFoundError(f"{path} not found")
        if response.status_code in TRANSIENT_STATUS_CODES:
            raise ApiTransientError(f"{path} returned HTTP {response.status_code}")
        if response.is_error:
            raise ApiClientError(f"{path} returned HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise ApiResponseError(f"{path} returned a non-JSON body") from e

    @staticmethod
    def _parse_list(path: str, body: Any, parse: Callable[[dict[str, Any]], T]) -> list[T]:
        if body is None:
            return []
        if not isinstance(body, list):
            raise ApiResponseError(f"{path} returned {type(body).__name__}, expected a list")
        try:
            return [parse(item) for item in body]
        except (KeyError, ValueError, TypeError) as e:
            raise ApiResponseError(f"{path} returned a malformed record: {e!r}") from e

    @staticmethod
    def _parse_one(path: str, body: Any, parse: Callable[[dict[str, Any]], T]) -> T:
        if not isinstance(body, dict):
            raise ApiResponseError(f"{path} returned {type(body).__name__}, expected an object")
        try:
            return parse(body)
        except (KeyError, ValueError, TypeError) as e:
            raise ApiResponseError(f"{path} returned a malformed record: {e!r}") from e
