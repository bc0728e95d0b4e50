"""Tests for the FastAPI application shell.

Tests cover:
- Health check endpoint (/health)
- Lifespan wiring of services from the environment
- Error rendering for FulfillmentError and request validation
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from fulfillment.dependencies import Services, build_services
from fulfillment.main import app
from fulfillment.services.expiry_reaper import ExpiryReaper


class TestHealthEndpoint:
    def test_health_endpoint_returns_200(self, api_client: TestClient) -> None:
        response = api_client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"status": "healthy", "service": "media-fulfillment"}

    def test_unknown_route_returns_404(self, api_client: TestClient) -> None:
        assert api_client.get("/nope").status_code == status.HTTP_404_NOT_FOUND


class TestLifespan:
    def test_startup_without_configuration(self) -> None:
        """No DATABASE_URL and no credentials: app starts with features disabled."""
        with patch("fulfillment.main.async_session_factory", None):
            with TestClient(app) as client:
                services = app.state.services
                assert services.media_pipeline is None
                assert services.reaper is None
                assert services.dispatcher is None
                assert client.get("/health").status_code == 200
        del app.state.services

    def test_startup_with_archive_credentials(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ARCHIVE_ACCESS_KEY", "access")
        monkeypatch.setenv("ARCHIVE_SECRET_KEY", "secret")

        with patch("fulfillment.main.async_session_factory", None):
            with TestClient(app):
                assert app.state.services.media_pipeline is not None
                assert app.state.services.archive_client is not None
        del app.state.services

    def test_sweep_task_started_and_cancelled(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EXPIRY_SWEEP_ENABLED", "true")
        reaper = AsyncMock(spec=ExpiryReaper)
        services = Services(lifecycle=AsyncMock(), reaper=reaper)

        with patch("fulfillment.main.build_services", return_value=services), patch(
            "fulfillment.main.expiry_sweep_loop", new=AsyncMock()
        ) as loop:
            with TestClient(app):
                pass

        loop.assert_called_once_with(reaper)
        del app.state.services


class TestBuildServices:
    @pytest.mark.asyncio
    async def test_database_enables_dispatcher_and_reaper(self, session_factory) -> None:
        services = build_services(session_factory)

        assert services.dispatcher is not None
        assert services.reaper is not None
        assert services.reaper.whop_client is None
        assert services.lifecycle.dispatcher is services.dispatcher
        await services.close()

    @pytest.mark.asyncio
    async def test_whop_key_enables_checkout_sweep(
        self, session_factory, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("WHOP_API_KEY", "whop-key")

        services = build_services(session_factory)

        assert services.whop_client is not None
        assert services.reaper.whop_client is services.whop_client
        await services.close()
