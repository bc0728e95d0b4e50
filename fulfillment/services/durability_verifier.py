"""Durability verifier: stage 3 of the media delivery pipeline.

The archive indexes new objects asynchronously, so a fresh upload can answer
404 for a few seconds. The verifier waits a settle delay, then polls the
public download URL with HEAD requests until it sees 2xx or gives up.

A failed verification is a soft success: the upload stands, the caller
reports archiveVerified=false, and the timeout is only logged.
"""

import asyncio
from collections.abc import Awaitable, Callable

import httpx

from fulfillment.clients.archive import ArchiveClient
from fulfillment.config import (
    get_archive_settle_seconds,
    get_archive_verify_attempts,
    get_archive_verify_delay_seconds,
)
from fulfillment.exceptions import ArchiveVerifyTimeout
from fulfillment.utils.logging import get_logger
from fulfillment.utils.retry import RetryPolicy

log = get_logger(__name__)


def _not_yet_visible(status: int) -> bool:
    return status == 404


def _is_transport_error(exception: BaseException) -> bool:
    return isinstance(exception, httpx.TransportError)


class DurabilityVerifier:
    """Bounded existence checks against a permanent archive location."""

    def __init__(
        self,
        client: ArchiveClient,
        settle_seconds: float | None = None,
        attempts: int | None = None,
        delay_seconds: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.settle_seconds = (
            get_archive_settle_seconds() if settle_seconds is None else settle_seconds
        )
        self._sleep = sleep
        self.retry_policy = RetryPolicy(
            max_attempts=get_archive_verify_attempts() if attempts is None else attempts,
            delay_seconds=(
                get_archive_verify_delay_seconds() if delay_seconds is None else delay_seconds
            ),
            retry_on_exception=_is_transport_error,
            retry_on_result=_not_yet_visible,
            name="archive_verify",
            sleep=sleep,
        )

    async def verify(self, url: str) -> bool:
        """Return True once the object answers 2xx, False otherwise.

        404 and transport errors are retried; any other status stops early.
        Never raises for a missing object.
        """
        if self.settle_seconds > 0:
            await self._sleep(self.settle_seconds)

        last_status: int | None = None
        try:
            last_status = await self.retry_policy.call(self.client.head_status, url)
        except httpx.TransportError as e:
            log.warning("archive_verify_unreachable", url=url, error=str(e))

        if last_status is not None and 200 <= last_status < 300:
            log.info("archive_verified", url=url, status_code=last_status)
            return True

        timeout = ArchiveVerifyTimeout(
            url, attempts=self.retry_policy.max_attempts, last_status=last_status
        )
        log.warning(
            "archive_verify_timeout",
            url=url,
            attempts=timeout.attempts,
            last_status=last_status,
            error=str(timeout),
        )
        return False
