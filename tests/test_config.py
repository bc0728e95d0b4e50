"""Tests for environment-based configuration getters."""

import pytest

from fulfillment import config


class TestArchiveCredentials:
    def test_returns_none_when_missing(self) -> None:
        assert config.get_archive_credentials() is None

    def test_returns_none_when_only_access_key_set(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ARCHIVE_ACCESS_KEY", "access")

        assert config.get_archive_credentials() is None

    def test_returns_pair_when_both_set(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ARCHIVE_ACCESS_KEY", "access")
        monkeypatch.setenv("ARCHIVE_SECRET_KEY", "secret")

        assert config.get_archive_credentials() == ("access", "secret")


class TestEndpoints:
    def test_archive_endpoint_defaults(self) -> None:
        assert config.get_archive_s3_endpoint() == "https://s3.us.archive.org"
        assert config.get_archive_download_base() == "https://archive.org"

    def test_trailing_slash_stripped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ARCHIVE_S3_ENDPOINT", "http://localhost:9000/")
        monkeypatch.setenv("WHOP_API_BASE", "http://whop.test/api/v2/")

        assert config.get_archive_s3_endpoint() == "http://localhost:9000"
        assert config.get_whop_api_base() == "http://whop.test/api/v2"


class TestTunables:
    def test_defaults(self) -> None:
        assert config.get_archive_settle_seconds() == 3.0
        assert config.get_archive_verify_attempts() == 3
        assert config.get_archive_verify_delay_seconds() == 2.0
        assert config.get_order_expiry_hours() == 72
        assert config.get_checkout_sweep_batch_size() == 50
        assert config.get_expiry_sweep_interval() == 3600
        assert config.is_expiry_sweep_enabled() is True

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("10", 60), ("600", 600), ("999999", 86400)],
    )
    def test_sweep_interval_clamped(
        self, monkeypatch: pytest.MonkeyPatch, raw: str, expected: int
    ) -> None:
        monkeypatch.setenv("EXPIRY_SWEEP_INTERVAL_SECONDS", raw)

        assert config.get_expiry_sweep_interval() == expected

    def test_invalid_int_falls_back_to_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ORDER_EXPIRY_HOURS", "three days")

        assert config.get_order_expiry_hours() == 72

    def test_invalid_float_falls_back_to_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ARCHIVE_SETTLE_SECONDS", "soon")

        assert config.get_archive_settle_seconds() == 3.0

    def test_sweep_can_be_disabled(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EXPIRY_SWEEP_ENABLED", "false")

        assert config.is_expiry_sweep_enabled() is False


class TestDatabaseUrl:
    def test_converts_to_asyncpg(self, monkeypatch: pytest.MonkeyPatch) -> None:
        config.get_database_url.cache_clear()
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db:5432/app")
        try:
            assert config.get_database_url() == "postgresql+asyncpg://u:p@db:5432/app"
        finally:
            config.get_database_url.cache_clear()

    def test_missing_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        config.get_database_url.cache_clear()
        monkeypatch.delenv("DATABASE_URL", raising=False)
        try:
            with pytest.raises(ValueError, match="DATABASE_URL"):
                config.get_database_url()
        finally:
            config.get_database_url.cache_clear()
