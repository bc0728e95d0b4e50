"""Webhook fan-out for order events.

Order state changes are committed first, then published here. Publishing is
fire-and-forget from the caller's point of view, but every delivery runs as a
tracked task: concurrency is bounded by a semaphore, each outcome is logged,
and pending deliveries are drained on shutdown.

Endpoint configuration lives in the ``webhooks_config`` settings row and is
cached through an injected TTLCache.

Architecture Pattern:
    - Async HTTP client (httpx), 10s timeout per endpoint
    - HMAC-SHA256 body signature when the endpoint has a secret
    - Graceful degradation (log on failure, never raise to the caller)
"""

import asyncio
import hashlib
import hmac
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fulfillment.config import get_notify_max_concurrency, get_settings_cache_ttl
from fulfillment.exceptions import ExternalNotifyFailure
from fulfillment.models import Setting, utcnow
from fulfillment.schemas.events import NotificationEvent, WebhookEndpoint, WebhooksConfig
from fulfillment.utils.cache import TTLCache
from fulfillment.utils.logging import get_logger

log = get_logger(__name__)

WEBHOOKS_CONFIG_KEY = "webhooks_config"


def sign_body(secret: str, body: bytes) -> str:
    """HMAC-SHA256 hex digest of the request body."""
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


@dataclass
class DispatchOutcome:
    event: str
    sent: int = 0
    failed: int = 0


class NotificationDispatcher:
    """Publishes NotificationEvents to subscribed webhook endpoints.

    Attributes:
        cache: Settings cache holding the parsed WebhooksConfig.
        client: Async HTTP client for endpoint POSTs.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: TTLCache[WebhooksConfig] | None = None,
        client: httpx.AsyncClient | None = None,
        max_concurrency: int | None = None,
        source: str = "fulfillment",
    ):
        self._session_factory = session_factory
        self.cache = cache if cache is not None else TTLCache(get_settings_cache_ttl())
        self.client = client or httpx.AsyncClient(timeout=10.0)
        self.source = source
        self._semaphore = asyncio.Semaphore(max_concurrency or get_notify_max_concurrency())
        self._tasks: set[asyncio.Task[DispatchOutcome]] = set()

    async def _load_config_from_db(self) -> WebhooksConfig:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Setting).where(Setting.key == WEBHOOKS_CONFIG_KEY)
                )
                setting = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            log.error("webhooks_config_load_failed", error=str(e))
            return WebhooksConfig()

        if setting is None:
            return WebhooksConfig()
        try:
            return WebhooksConfig.model_validate(setting.value)
        except PydanticValidationError as e:
            log.error("webhooks_config_invalid", error=str(e))
            return WebhooksConfig()

    async def load_config(self) -> WebhooksConfig:
        return await self.cache.get_or_load(WEBHOOKS_CONFIG_KEY, self._load_config_from_db)

    def invalidate_config(self) -> None:
        """Drop the cached endpoint config (call after saving settings)."""
        self.cache.invalidate(WEBHOOKS_CONFIG_KEY)

    def build_event(self, event_type: str, order: dict[str, Any]) -> NotificationEvent:
        return NotificationEvent(
            event=event_type,
            timestamp=utcnow(),
            order=order,
            meta={"version": "3.0", "source": self.source},
        )

    async def _post(self, endpoint: WebhookEndpoint, event: NotificationEvent, body: bytes) -> None:
        """POST one event to one endpoint.

        Raises:
            ExternalNotifyFailure: Non-2xx response or transport error.
        """
        headers = {"Content-Type": "application/json", "X-Webhook-Event": event.event}
        if endpoint.secret:
            headers["X-Webhook-Secret"] = endpoint.secret
            headers["X-Webhook-Signature"] = sign_body(endpoint.secret, body)

        async with self._semaphore:
            try:
                response = await self.client.post(endpoint.url, content=body, headers=headers)
            except httpx.HTTPError as e:
                raise ExternalNotifyFailure(
                    f"Webhook request failed: {e}", endpoint=endpoint.url
                ) from e

        if not response.is_success:
            raise ExternalNotifyFailure(
                f"Webhook returned {response.status_code}",
                endpoint=endpoint.url,
                status=response.status_code,
            )

    async def dispatch(self, event: NotificationEvent) -> DispatchOutcome:
        """Send an event to every subscribed endpoint and log each outcome.

        Never raises for endpoint failures.
        """
        outcome = DispatchOutcome(event=event.event)
        config = await self.load_config()
        endpoints = config.subscribers(event.event)
        if not endpoints:
            log.debug("notification_no_subscribers", event_type=event.event)
            return outcome

        body = event.model_dump_json().encode()
        results = await asyncio.gather(
            *(self._post(endpoint, event, body) for endpoint in endpoints),
            return_exceptions=True,
        )

        for endpoint, result in zip(endpoints, results):
            if isinstance(result, ExternalNotifyFailure):
                outcome.failed += 1
                log.warning(
                    "notification_failed",
                    event_type=event.event,
                    endpoint_id=endpoint.id,
                    endpoint=endpoint.url,
                    status=result.status,
                    error=result.message,
                )
            elif isinstance(result, BaseException):
                outcome.failed += 1
                log.error(
                    "notification_error",
                    event_type=event.event,
                    endpoint_id=endpoint.id,
                    error=str(result),
                    error_type=type(result).__name__,
                )
            else:
                outcome.sent += 1
                log.info("notification_sent", event_type=event.event, endpoint_id=endpoint.id)

        return outcome

    def _on_task_done(self, task: asyncio.Task[DispatchOutcome]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            log.warning("notification_task_cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            log.error("notification_task_failed", error=str(exc), error_type=type(exc).__name__)

    def publish(self, event_type: str, order: dict[str, Any]) -> asyncio.Task[DispatchOutcome]:
        """Schedule an event for delivery and return immediately.

        The returned task is tracked; callers may await it but need not.
        """
        event = self.build_event(event_type, order)
        task = asyncio.create_task(self.dispatch(event), name=f"notify:{event_type}")
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait for in-flight deliveries, cancelling any still running after timeout."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            log.warning("notification_drain_timeout", cancelled=len(still_running))

    async def close(self) -> None:
        """Drain pending deliveries and close the HTTP client."""
        await self.drain()
        await self.client.aclose()
