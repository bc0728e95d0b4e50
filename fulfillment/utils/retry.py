"""Fixed-delay retry policy shared by archive verification and provider calls.

Built on tenacity. Attempt counts here are small and bounded, so the policy
uses a fixed wait rather than exponential backoff.

Two kinds of retry trigger are supported:
- retry_on_exception: predicate deciding whether a raised exception is retriable
- retry_on_result: predicate deciding whether a returned value should be retried
  (e.g. an HTTP 404 while an archived object is still being indexed)

When attempts are exhausted on a retriable *result*, the last result is
returned so the caller can inspect it. When exhausted on an exception, the
last exception is re-raised.

Usage:
    policy = RetryPolicy(
        max_attempts=3,
        delay_seconds=2.0,
        retry_on_exception=lambda e: isinstance(e, httpx.TransportError),
        retry_on_result=lambda status: status == 404,
    )
    status = await policy.call(client.head_status, url)
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

log = structlog.get_logger(__name__)

T = TypeVar("T")


def _never(_: Any) -> bool:
    return False


def _return_last_outcome(retry_state: RetryCallState) -> Any:
    """Return the last result, or re-raise the last exception."""
    outcome = retry_state.outcome
    if outcome is None:
        raise RuntimeError("Retry finished without an attempt outcome")
    return outcome.result()


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded fixed-delay retry policy.

    Attributes:
        max_attempts: Total attempts including the first (>= 1).
        delay_seconds: Fixed wait between attempts.
        retry_on_exception: Returns True for exceptions worth retrying.
        retry_on_result: Returns True for results worth retrying.
        name: Label used in retry log lines.
        sleep: Awaitable sleep function (injectable for tests).
    """

    max_attempts: int
    delay_seconds: float
    retry_on_exception: Callable[[BaseException], bool] = _never
    retry_on_result: Callable[[Any], bool] = _never
    name: str = "operation"
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must be non-negative")

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        if outcome is not None and outcome.failed:
            reason = type(outcome.exception()).__name__
        else:
            reason = repr(outcome.result()) if outcome is not None else "unknown"
        log.warning(
            "retry_scheduled",
            operation=self.name,
            attempt=retry_state.attempt_number,
            max_attempts=self.max_attempts,
            wait_seconds=self.delay_seconds,
            reason=reason,
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.delay_seconds),
            retry=(
                retry_if_exception(self.retry_on_exception)
                | retry_if_result(self.retry_on_result)
            ),
            before_sleep=self._before_sleep,
            retry_error_callback=_return_last_outcome,
            sleep=self.sleep,
            reraise=True,
        )

    async def call(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Invoke fn under this policy.

        Returns:
            The first non-retriable result, or the last result once attempts
            are exhausted.

        Raises:
            Any non-retriable exception immediately; the last retriable
            exception once attempts are exhausted.
        """
        return await self._retrying()(fn, *args, **kwargs)
