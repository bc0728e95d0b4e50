"""Expiry reaper: scheduled cleanup of abandoned orders and checkout sessions.

Two independent sweeps per run:

1. Orders still ``paid`` after the expiry window (default 72h) become
   ``expired``. Pure time predicate, one short transaction.
2. Pending checkout sessions past ``expires_at`` are deleted at the provider
   (session, then plan) and marked ``expired``. At most one batch per run,
   oldest first, processed one at a time behind the provider rate limiter.
   A row only becomes ``expired`` after the provider confirms the session
   deletion or reports it already gone; otherwise it stays ``pending`` and is
   retried on the next run.

Architecture:
- Runs as a FastAPI lifespan background task, or once via
  ``python -m fulfillment.reaper``
- Short transactions: never holds a DB transaction across provider calls
"""

import asyncio
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta

import httpx
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fulfillment.clients.whop import WhopClient
from fulfillment.config import (
    get_checkout_sweep_batch_size,
    get_expiry_sweep_interval,
    get_order_expiry_hours,
)
from fulfillment.exceptions import ProviderError
from fulfillment.models import CheckoutSession, CheckoutStatus, Order, OrderStatus, utcnow
from fulfillment.utils.logging import get_logger

log = get_logger(__name__)

# Pause after an unexpected loop error before the next attempt
ERROR_BACKOFF_SECONDS = 60


@dataclass
class SweepResult:
    """Counts from one reaper run.

    sessions_skipped is True when no checkout provider is configured.
    """

    orders_expired: int = 0
    sessions_expired: int = 0
    sessions_failed: int = 0
    sessions_skipped: bool = False

    def to_dict(self) -> dict[str, int | bool]:
        return asdict(self)


class ExpiryReaper:
    """Expires stale paid orders and reaps abandoned checkout sessions.

    Attributes:
        whop_client: Provider client, or None to skip the checkout sweep.
        expiry_hours: Age after which a paid order expires.
        batch_size: Maximum checkout sessions per run.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        whop_client: WhopClient | None = None,
        expiry_hours: int | None = None,
        batch_size: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self.whop_client = whop_client
        self.expiry_hours = expiry_hours or get_order_expiry_hours()
        self.batch_size = batch_size or get_checkout_sweep_batch_size()
        self._clock = clock

    async def expire_stale_orders(self) -> int:
        """Expire paid orders older than the expiry window. Returns the count."""
        cutoff = self._clock() - timedelta(hours=self.expiry_hours)

        async with self._session_factory() as session, session.begin():
            # Status is re-checked by the UPDATE itself; a concurrent delivery wins.
            result = await session.execute(
                update(Order)
                .where(
                    Order.status == OrderStatus.PAID,
                    Order.created_at < cutoff,
                )
                .values(status=OrderStatus.EXPIRED)
                .returning(Order.order_id)
                .execution_options(synchronize_session=False)
            )
            order_ids = list(result.scalars().all())

        if order_ids:
            log.info(
                "orders_expired",
                count=len(order_ids),
                order_ids=order_ids,
                expiry_hours=self.expiry_hours,
            )
        return len(order_ids)

    async def _load_expired_sessions(self) -> list[CheckoutSession]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(CheckoutSession)
                .where(
                    CheckoutSession.status == CheckoutStatus.PENDING,
                    CheckoutSession.expires_at < self._clock(),
                )
                .order_by(CheckoutSession.created_at)
                .limit(self.batch_size)
            )
            return list(result.scalars().all())

    async def _mark_session_expired(self, checkout_session_id: int) -> None:
        async with self._session_factory() as session, session.begin():
            row = await session.get(CheckoutSession, checkout_session_id)
            if row is None or row.status is not CheckoutStatus.PENDING:
                return
            row.status = CheckoutStatus.EXPIRED
            row.completed_at = self._clock()

    async def _reap_one(self, whop_client: WhopClient, checkout: CheckoutSession) -> bool:
        """Delete one session (and its plan) at the provider.

        Returns:
            True if the row was marked expired.
        """
        try:
            await whop_client.delete_checkout_session(checkout.checkout_id)
        except (ProviderError, httpx.HTTPError) as e:
            log.warning(
                "checkout_session_delete_failed",
                checkout_id=checkout.checkout_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            session_deleted = False
        else:
            session_deleted = True

        if checkout.plan_id:
            try:
                await whop_client.delete_plan(checkout.plan_id)
            except (ProviderError, httpx.HTTPError) as e:
                log.warning(
                    "checkout_plan_delete_failed",
                    checkout_id=checkout.checkout_id,
                    plan_id=checkout.plan_id,
                    error=str(e),
                )

        if not session_deleted:
            return False

        await self._mark_session_expired(checkout.id)
        log.info(
            "checkout_session_expired",
            checkout_id=checkout.checkout_id,
            plan_id=checkout.plan_id,
        )
        return True

    async def reap_checkout_sessions(self, result: SweepResult) -> None:
        """Reap one batch of expired pending checkout sessions into result."""
        if self.whop_client is None:
            log.warning("checkout_sweep_skipped", reason="WHOP_API_KEY not set")
            result.sessions_skipped = True
            return

        sessions = await self._load_expired_sessions()
        if not sessions:
            return

        log.info("checkout_sweep_started", count=len(sessions), batch_size=self.batch_size)
        for checkout in sessions:
            if await self._reap_one(self.whop_client, checkout):
                result.sessions_expired += 1
            else:
                result.sessions_failed += 1

    async def run(self) -> SweepResult:
        """Run both sweeps once and log the counts."""
        result = SweepResult()
        result.orders_expired = await self.expire_stale_orders()
        await self.reap_checkout_sessions(result)
        log.info("expiry_sweep_completed", **result.to_dict())
        return result


async def expiry_sweep_loop(reaper: ExpiryReaper, interval_seconds: int | None = None) -> None:
    """Background task: run the reaper every interval until cancelled.

    Errors are logged but do not stop the loop.
    """
    interval = interval_seconds or get_expiry_sweep_interval()
    log.info("expiry_sweep_loop_started", interval_seconds=interval)

    while True:
        try:
            await reaper.run()
            await asyncio.sleep(interval)
        except asyncio.CancelledError:
            log.info("expiry_sweep_loop_cancelled")
            break
        except (SQLAlchemyError, RuntimeError, OSError, TimeoutError) as e:
            log.error(
                "expiry_sweep_loop_error",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            await asyncio.sleep(ERROR_BACKOFF_SECONDS)
