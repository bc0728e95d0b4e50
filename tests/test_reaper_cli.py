"""Tests for the one-shot reaper entry point (python -m fulfillment.reaper)."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from fulfillment import reaper as reaper_cli
from fulfillment.models import utcnow
from fulfillment.services.expiry_reaper import SweepResult


@pytest.mark.asyncio
async def test_run_once_expires_orders(session_factory, make_order) -> None:
    await make_order(order_id="OLD", created_at=utcnow() - timedelta(hours=80))

    with patch.object(reaper_cli, "get_session_factory", return_value=session_factory):
        result = await reaper_cli.run_once()

    assert result.orders_expired == 1
    assert result.sessions_skipped is True


def test_main_returns_zero_after_sweep() -> None:
    with patch.object(reaper_cli, "run_once", new=AsyncMock(return_value=SweepResult())):
        assert reaper_cli.main() == 0


def test_main_returns_one_without_database() -> None:
    with patch.object(
        reaper_cli,
        "get_session_factory",
        side_effect=RuntimeError("Database not configured. Set DATABASE_URL environment variable."),
    ):
        assert reaper_cli.main() == 1
