"""Configuration management for the fulfillment service.

This module provides centralized configuration loading from environment variables.
Required secrets are cached after first read; tunables are read on each call so
tests can override them with monkeypatch.

Environment Variables:
    DATABASE_URL: PostgreSQL connection URL (required for production)
    STAGING_ROOT: Directory backing the ephemeral staging store
    ARCHIVE_ACCESS_KEY / ARCHIVE_SECRET_KEY: archive.org S3 credentials
    WHOP_API_KEY: Checkout provider API key (reaper skips remote cleanup if unset)

Usage:
    from fulfillment.config import get_archive_credentials, get_order_expiry_hours

    access_key, secret_key = get_archive_credentials()
    hours = get_order_expiry_hours()
"""

import os
from functools import lru_cache

import structlog

log = structlog.get_logger(__name__)

# Upload limits (bytes)
MAX_VIDEO_BYTES = 500 * 1024 * 1024
MAX_FILE_BYTES = 10 * 1024 * 1024

# Durability verification defaults
DEFAULT_ARCHIVE_SETTLE_SECONDS = 3.0
DEFAULT_ARCHIVE_VERIFY_ATTEMPTS = 3
DEFAULT_ARCHIVE_VERIFY_DELAY_SECONDS = 2.0

# Reaper defaults
DEFAULT_ORDER_EXPIRY_HOURS = 72
DEFAULT_CHECKOUT_SWEEP_BATCH_SIZE = 50
DEFAULT_EXPIRY_SWEEP_INTERVAL_SECONDS = 3600


def _get_int(name: str, default: int, minimum: int, maximum: int) -> int:
    """Read an integer env var, clamped to [minimum, maximum].

    Invalid values fall back to the default with a warning.
    """
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return max(minimum, min(maximum, int(raw)))
    except ValueError:
        log.warning("invalid_int_setting", name=name, value=raw, using_default=default)
        return default


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return max(0.0, float(raw))
    except ValueError:
        log.warning("invalid_float_setting", name=name, value=raw, using_default=default)
        return default


@lru_cache
def get_database_url() -> str:
    """Get database URL from environment.

    Converts postgresql:// to postgresql+asyncpg:// for async SQLAlchemy.

    Raises:
        ValueError: If DATABASE_URL not set.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise ValueError("DATABASE_URL environment variable is required")

    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return url


def get_staging_root() -> str:
    """Get the staging store root directory (default: "/app/staging")."""
    return os.getenv("STAGING_ROOT", "/app/staging")


def get_archive_credentials() -> tuple[str, str] | None:
    """Get archive.org S3 credentials.

    Returns:
        (access_key, secret_key), or None when either is missing. Callers turn
        None into ConfigurationError before any upload stage starts.
    """
    access_key = os.getenv("ARCHIVE_ACCESS_KEY")
    secret_key = os.getenv("ARCHIVE_SECRET_KEY")
    if not access_key or not secret_key:
        return None
    return access_key, secret_key


def get_archive_s3_endpoint() -> str:
    """Get the archive S3 upload endpoint (default: "https://s3.us.archive.org")."""
    return os.getenv("ARCHIVE_S3_ENDPOINT", "https://s3.us.archive.org").rstrip("/")


def get_archive_download_base() -> str:
    """Get the public archive base URL used for download and embed links."""
    return os.getenv("ARCHIVE_DOWNLOAD_BASE", "https://archive.org").rstrip("/")


def get_archive_settle_seconds() -> float:
    """Delay before the first durability check (default: 3s)."""
    return _get_float("ARCHIVE_SETTLE_SECONDS", DEFAULT_ARCHIVE_SETTLE_SECONDS)


def get_archive_verify_attempts() -> int:
    """Maximum durability checks (default: 3, range 1-10)."""
    return _get_int("ARCHIVE_VERIFY_ATTEMPTS", DEFAULT_ARCHIVE_VERIFY_ATTEMPTS, 1, 10)


def get_archive_verify_delay_seconds() -> float:
    """Fixed delay between durability checks (default: 2s)."""
    return _get_float("ARCHIVE_VERIFY_DELAY_SECONDS", DEFAULT_ARCHIVE_VERIFY_DELAY_SECONDS)


def get_whop_api_key() -> str | None:
    """Get Whop API key.

    Returns None when unset, allowing the service to start without the
    checkout provider. The reaper then skips the checkout-session sweep.
    """
    return os.getenv("WHOP_API_KEY")


def get_whop_api_base() -> str:
    """Get Whop API base URL (default: "https://api.whop.com/api/v2")."""
    return os.getenv("WHOP_API_BASE", "https://api.whop.com/api/v2").rstrip("/")


def get_order_expiry_hours() -> int:
    """Age after which unfulfilled paid orders expire (default: 72, range 1-8760)."""
    return _get_int("ORDER_EXPIRY_HOURS", DEFAULT_ORDER_EXPIRY_HOURS, 1, 8760)


def get_checkout_sweep_batch_size() -> int:
    """Maximum checkout sessions reaped per run (default: 50, range 1-500)."""
    return _get_int(
        "CHECKOUT_SWEEP_BATCH_SIZE", DEFAULT_CHECKOUT_SWEEP_BATCH_SIZE, 1, 500
    )


def get_expiry_sweep_interval() -> int:
    """Get reaper interval in seconds.

    Environment Variable:
        EXPIRY_SWEEP_INTERVAL_SECONDS: Sweep interval (default: 3600)

    Returns:
        Interval in seconds, clamped between 60 and 86400.
    """
    return _get_int(
        "EXPIRY_SWEEP_INTERVAL_SECONDS", DEFAULT_EXPIRY_SWEEP_INTERVAL_SECONDS, 60, 86400
    )


def is_expiry_sweep_enabled() -> bool:
    """Whether the API process runs the reaper loop (default: true)."""
    return os.getenv("EXPIRY_SWEEP_ENABLED", "true").lower() == "true"


def get_settings_cache_ttl() -> int:
    """TTL for cached settings rows such as the webhook config (default: 60s)."""
    return _get_int("SETTINGS_CACHE_TTL_SECONDS", 60, 0, 3600)


def get_notify_max_concurrency() -> int:
    """Maximum in-flight notification deliveries (default: 4, range 1-32)."""
    return _get_int("NOTIFY_MAX_CONCURRENCY", 4, 1, 32)
