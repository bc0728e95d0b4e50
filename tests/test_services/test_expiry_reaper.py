"""Tests for ExpiryReaper and the background sweep loop."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from sqlalchemy import select

from fulfillment.clients.whop import WhopClient
from fulfillment.models import CheckoutSession, CheckoutStatus, OrderStatus, utcnow
from fulfillment.schemas.orders import DeliveryRequest
from fulfillment.services.delivery_finalizer import DeliveryFinalizer
from fulfillment.services.expiry_reaper import (
    ERROR_BACKOFF_SECONDS,
    ExpiryReaper,
    SweepResult,
    expiry_sweep_loop,
)
from fulfillment.services.order_queries import require_order

NOW = utcnow()


class WhopStub:
    """Answers DELETEs by path; unknown paths succeed."""

    def __init__(self, statuses: dict[str, int] | None = None):
        self.statuses = statuses or {}
        self.paths: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api/v2")
        self.paths.append(path)
        return httpx.Response(self.statuses.get(path, 200))


def _whop(stub: WhopStub, no_sleep) -> WhopClient:
    return WhopClient(
        "key",
        base_url="https://whop.test/api/v2",
        client=httpx.AsyncClient(transport=httpx.MockTransport(stub)),
        max_rate=1000,
        sleep=no_sleep,
    )


async def _checkout_status(session_factory, checkout_id: str) -> CheckoutStatus:
    async with session_factory() as session:
        result = await session.execute(
            select(CheckoutSession.status).where(CheckoutSession.checkout_id == checkout_id)
        )
        return result.scalar_one()


class TestExpireStaleOrders:
    @pytest.mark.asyncio
    async def test_only_old_paid_orders_expire(
        self, session_factory, async_session, make_order
    ) -> None:
        await make_order(order_id="OLD", created_at=NOW - timedelta(hours=73))
        await make_order(order_id="FRESH", created_at=NOW - timedelta(hours=71))
        await make_order(
            order_id="DONE", status=OrderStatus.DELIVERED, created_at=NOW - timedelta(hours=100)
        )
        reaper = ExpiryReaper(session_factory, clock=lambda: NOW)

        expired = await reaper.expire_stale_orders()

        assert expired == 1
        assert (await require_order("OLD", async_session)).status is OrderStatus.EXPIRED
        assert (await require_order("FRESH", async_session)).status is OrderStatus.PAID
        assert (await require_order("DONE", async_session)).status is OrderStatus.DELIVERED

    @pytest.mark.asyncio
    async def test_expiry_window_is_configurable(self, session_factory, make_order) -> None:
        await make_order(order_id="OLD", created_at=NOW - timedelta(hours=25))

        reaper = ExpiryReaper(session_factory, expiry_hours=24, clock=lambda: NOW)

        expired = await reaper.expire_stale_orders()

        assert expired == 1

    @pytest.mark.asyncio
    async def test_order_delivered_before_sweep_is_left_alone(
        self, session_factory, async_session, make_order
    ) -> None:
        await make_order(order_id="LATE", created_at=NOW - timedelta(hours=73))
        await DeliveryFinalizer().finalize(
            async_session,
            DeliveryRequest(orderId="LATE", videoUrl="https://archive.test/download/late/final.mp4"),
        )
        reaper = ExpiryReaper(session_factory, clock=lambda: NOW)

        expired = await reaper.expire_stale_orders()

        assert expired == 0
        order = await require_order("LATE", async_session)
        assert order.status is OrderStatus.DELIVERED
        assert order.delivered_at is not None

    @pytest.mark.asyncio
    async def test_nothing_to_expire(self, session_factory) -> None:
        assert await ExpiryReaper(session_factory, clock=lambda: NOW).expire_stale_orders() == 0


class TestReapCheckoutSessions:
    @pytest.mark.asyncio
    async def test_deleted_and_already_gone_sessions_expire(
        self, session_factory, make_checkout_session, no_sleep
    ) -> None:
        await make_checkout_session("ch_ok", NOW - timedelta(hours=1), plan_id="plan_ok")
        await make_checkout_session("ch_gone", NOW - timedelta(hours=1))
        stub = WhopStub({"/checkout_sessions/ch_gone": 404})
        reaper = ExpiryReaper(session_factory, whop_client=_whop(stub, no_sleep), clock=lambda: NOW)

        result = SweepResult()
        await reaper.reap_checkout_sessions(result)

        assert (result.sessions_expired, result.sessions_failed) == (2, 0)
        assert "/plans/plan_ok" in stub.paths
        assert await _checkout_status(session_factory, "ch_ok") is CheckoutStatus.EXPIRED
        assert await _checkout_status(session_factory, "ch_gone") is CheckoutStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_rejected_delete_stays_pending(
        self, session_factory, make_checkout_session, no_sleep
    ) -> None:
        await make_checkout_session("ch_denied", NOW - timedelta(hours=1), plan_id="plan_x")
        stub = WhopStub({"/checkout_sessions/ch_denied": 403})
        reaper = ExpiryReaper(session_factory, whop_client=_whop(stub, no_sleep), clock=lambda: NOW)

        result = SweepResult()
        await reaper.reap_checkout_sessions(result)

        assert (result.sessions_expired, result.sessions_failed) == (0, 1)
        assert await _checkout_status(session_factory, "ch_denied") is CheckoutStatus.PENDING
        # The plan is still attempted
        assert stub.paths == ["/checkout_sessions/ch_denied", "/plans/plan_x"]

    @pytest.mark.asyncio
    async def test_persistent_server_error_stays_pending(
        self, session_factory, make_checkout_session, no_sleep
    ) -> None:
        await make_checkout_session("ch_flaky", NOW - timedelta(hours=1))
        stub = WhopStub({"/checkout_sessions/ch_flaky": 503})
        reaper = ExpiryReaper(session_factory, whop_client=_whop(stub, no_sleep), clock=lambda: NOW)

        result = SweepResult()
        await reaper.reap_checkout_sessions(result)

        assert result.sessions_failed == 1
        assert stub.paths.count("/checkout_sessions/ch_flaky") == 3
        assert await _checkout_status(session_factory, "ch_flaky") is CheckoutStatus.PENDING

    @pytest.mark.asyncio
    async def test_plan_failure_does_not_block_expiry(
        self, session_factory, make_checkout_session, no_sleep
    ) -> None:
        await make_checkout_session("ch_1", NOW - timedelta(hours=1), plan_id="plan_bad")
        stub = WhopStub({"/plans/plan_bad": 403})
        reaper = ExpiryReaper(session_factory, whop_client=_whop(stub, no_sleep), clock=lambda: NOW)

        result = SweepResult()
        await reaper.reap_checkout_sessions(result)

        assert result.sessions_expired == 1
        assert await _checkout_status(session_factory, "ch_1") is CheckoutStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_unexpired_and_completed_sessions_ignored(
        self, session_factory, make_checkout_session, no_sleep
    ) -> None:
        await make_checkout_session("ch_future", NOW + timedelta(hours=1))
        await make_checkout_session(
            "ch_done", NOW - timedelta(hours=1), status=CheckoutStatus.COMPLETED
        )
        stub = WhopStub()
        reaper = ExpiryReaper(session_factory, whop_client=_whop(stub, no_sleep), clock=lambda: NOW)

        result = SweepResult()
        await reaper.reap_checkout_sessions(result)

        assert stub.paths == []
        assert result.sessions_expired == 0

    @pytest.mark.asyncio
    async def test_batch_limit_takes_oldest_first(
        self, session_factory, make_checkout_session, no_sleep
    ) -> None:
        for i in range(5):
            await make_checkout_session(
                f"ch_{i}", NOW - timedelta(hours=1), created_at=NOW - timedelta(hours=10 - i)
            )
        stub = WhopStub()
        reaper = ExpiryReaper(
            session_factory, whop_client=_whop(stub, no_sleep), batch_size=2, clock=lambda: NOW
        )

        result = SweepResult()
        await reaper.reap_checkout_sessions(result)

        assert result.sessions_expired == 2
        assert stub.paths == ["/checkout_sessions/ch_0", "/checkout_sessions/ch_1"]
        assert await _checkout_status(session_factory, "ch_2") is CheckoutStatus.PENDING

    @pytest.mark.asyncio
    async def test_skipped_without_provider(self, session_factory, make_checkout_session) -> None:
        await make_checkout_session("ch_1", NOW - timedelta(hours=1))

        result = SweepResult()
        await ExpiryReaper(session_factory, clock=lambda: NOW).reap_checkout_sessions(result)

        assert result.sessions_skipped is True
        assert await _checkout_status(session_factory, "ch_1") is CheckoutStatus.PENDING


class TestRun:
    @pytest.mark.asyncio
    async def test_run_reports_both_sweeps(
        self, session_factory, make_order, make_checkout_session, no_sleep
    ) -> None:
        await make_order(order_id="OLD", created_at=NOW - timedelta(hours=80))
        await make_checkout_session("ch_1", NOW - timedelta(minutes=5))
        reaper = ExpiryReaper(
            session_factory, whop_client=_whop(WhopStub(), no_sleep), clock=lambda: NOW
        )

        result = await reaper.run()

        assert result.to_dict() == {
            "orders_expired": 1,
            "sessions_expired": 1,
            "sessions_failed": 0,
            "sessions_skipped": False,
        }


class TestExpirySweepLoop:
    @pytest.mark.asyncio
    async def test_loop_stops_on_cancel(self) -> None:
        reaper = AsyncMock(spec=ExpiryReaper)
        task = asyncio.create_task(expiry_sweep_loop(reaper, interval_seconds=3600))

        for _ in range(5):
            await asyncio.sleep(0)
        task.cancel()
        await task

        reaper.run.assert_awaited_once()
        assert not task.cancelled()

    @pytest.mark.asyncio
    async def test_loop_survives_errors(self) -> None:
        reaper = AsyncMock(spec=ExpiryReaper)
        reaper.run.side_effect = [RuntimeError("db gone"), asyncio.CancelledError()]

        with patch("fulfillment.services.expiry_reaper.asyncio.sleep", new=AsyncMock()) as sleep:
            await expiry_sweep_loop(reaper, interval_seconds=3600)

        assert reaper.run.await_count == 2
        sleep.assert_awaited_once_with(ERROR_BACKOFF_SECONDS)
