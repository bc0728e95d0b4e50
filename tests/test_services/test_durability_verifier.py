"""Tests for DurabilityVerifier (settle delay + bounded HEAD polling)."""

from unittest.mock import AsyncMock

import httpx
import pytest

from fulfillment.services.durability_verifier import DurabilityVerifier

URL = "https://archive.test/download/item1/clip.mp4"


def _verifier(head_status: AsyncMock, sleep=None, **kwargs) -> DurabilityVerifier:
    client = AsyncMock()
    client.head_status = head_status
    return DurabilityVerifier(
        client,
        settle_seconds=kwargs.pop("settle_seconds", 3.0),
        attempts=kwargs.pop("attempts", 3),
        delay_seconds=kwargs.pop("delay_seconds", 2.0),
        sleep=sleep or AsyncMock(),
    )


class TestDurabilityVerifier:
    @pytest.mark.asyncio
    async def test_verified_on_first_success(self) -> None:
        head = AsyncMock(return_value=200)

        assert await _verifier(head).verify(URL) is True
        head.assert_awaited_once_with(URL)

    @pytest.mark.asyncio
    async def test_retries_404_until_visible(self) -> None:
        head = AsyncMock(side_effect=[404, 404, 200])

        assert await _verifier(head).verify(URL) is True
        assert head.await_count == 3

    @pytest.mark.asyncio
    async def test_exhausted_404_is_soft_failure(self) -> None:
        head = AsyncMock(return_value=404)

        assert await _verifier(head).verify(URL) is False
        assert head.await_count == 3

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self) -> None:
        head = AsyncMock(side_effect=[httpx.ConnectError("reset"), 200])

        assert await _verifier(head).verify(URL) is True

    @pytest.mark.asyncio
    async def test_persistent_transport_errors_do_not_raise(self) -> None:
        head = AsyncMock(side_effect=httpx.ReadTimeout("slow"))

        assert await _verifier(head).verify(URL) is False
        assert head.await_count == 3

    @pytest.mark.asyncio
    async def test_other_status_stops_early(self) -> None:
        head = AsyncMock(return_value=403)

        assert await _verifier(head).verify(URL) is False
        head.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_settle_then_fixed_delays(self) -> None:
        sleep = AsyncMock()
        head = AsyncMock(return_value=404)

        await _verifier(head, sleep=sleep).verify(URL)

        assert [call.args[0] for call in sleep.await_args_list] == [3.0, 2.0, 2.0]

    @pytest.mark.asyncio
    async def test_zero_settle_skips_initial_sleep(self) -> None:
        sleep = AsyncMock()
        head = AsyncMock(return_value=200)

        await _verifier(head, sleep=sleep, settle_seconds=0).verify(URL)

        sleep.assert_not_awaited()

    def test_defaults_come_from_config(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ARCHIVE_VERIFY_ATTEMPTS", "5")
        monkeypatch.setenv("ARCHIVE_SETTLE_SECONDS", "1.5")

        verifier = DurabilityVerifier(AsyncMock())

        assert verifier.retry_policy.max_attempts == 5
        assert verifier.settle_seconds == 1.5
        assert verifier.retry_policy.delay_seconds == 2.0
