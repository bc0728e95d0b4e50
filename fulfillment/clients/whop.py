"""Whop API client for reaping abandoned checkout artifacts.

The storefront creates a Whop checkout session (and usually a one-off plan)
per purchase attempt. Sessions that are never completed must be deleted so
the plan cannot be bought later.

This client implements:
- Global request rate limit via AsyncLimiter (provider rate limits)
- Fixed-delay retry for transient errors (429, 5xx, timeouts) via RetryPolicy
- Error classification: 2xx and 404 count as deleted, other 4xx fail fast

Usage:
    client = WhopClient(api_key)
    deleted = await client.delete_checkout_session("ch_123")
    await client.close()
"""

import asyncio
from collections.abc import Awaitable, Callable

import httpx
from aiolimiter import AsyncLimiter

from fulfillment.config import get_whop_api_base
from fulfillment.exceptions import ProviderError
from fulfillment.utils.retry import RetryPolicy

RETRIABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def is_retriable_error(exception: BaseException) -> bool:
    """Retry transient HTTP statuses and network errors.

    Args:
        exception: Exception to classify

    Returns:
        True if error is retriable (429, 5xx, timeouts, connection errors)
    """
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code in RETRIABLE_STATUS_CODES
    return isinstance(exception, httpx.TransportError)


class WhopClient:
    """Rate-limited Whop API v2 client.

    Attributes:
        base_url: API base URL.
        client: Async HTTP client.
        rate_limiter: Shared limiter (default 5 requests per second).
        retry_policy: Policy applied to every call.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        max_rate: float = 5,
        retry_attempts: int = 3,
        retry_delay_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._api_key = api_key
        self.base_url = base_url or get_whop_api_base()
        self.client = client or httpx.AsyncClient(timeout=30.0)
        self.rate_limiter = AsyncLimiter(max_rate=max_rate, time_period=1)
        self.retry_policy = RetryPolicy(
            max_attempts=retry_attempts,
            delay_seconds=retry_delay_seconds,
            retry_on_exception=is_retriable_error,
            name="whop_api",
            sleep=sleep,
        )

    def __repr__(self) -> str:
        return f"WhopClient(base_url={self.base_url!r}, api_key=*****)"

    def _get_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    async def _delete_once(self, path: str) -> bool:
        async with self.rate_limiter:
            response = await self.client.delete(
                f"{self.base_url}{path}", headers=self._get_headers()
            )
        if response.status_code == 404:
            return True
        if response.status_code in RETRIABLE_STATUS_CODES:
            # Raises HTTPStatusError so the retry policy sees it
            response.raise_for_status()
        if response.is_success:
            return True
        raise ProviderError(
            f"Whop rejected DELETE {path}",
            status=response.status_code,
            details=response.text[:500],
        )

    async def _delete(self, path: str) -> bool:
        """DELETE a resource, treating 404 as already deleted.

        Returns:
            True when the provider confirmed deletion or the resource is gone.

        Raises:
            ProviderError: On non-retriable 4xx responses.
            httpx.HTTPStatusError: Retriable status persisted after all attempts.
            httpx.TransportError: Network error persisted after all attempts.
        """
        return await self.retry_policy.call(self._delete_once, path)

    async def delete_checkout_session(self, checkout_id: str) -> bool:
        return await self._delete(f"/checkout_sessions/{checkout_id}")

    async def delete_plan(self, plan_id: str) -> bool:
        return await self._delete(f"/plans/{plan_id}")

    async def close(self) -> None:
        """Close HTTP client connection."""
        await self.client.aclose()
