"""Shared pytest fixtures for async database testing.

This module provides reusable fixtures for testing SQLAlchemy models
and services using an in-memory SQLite database, plus small factories for
orders, products and checkout sessions.
"""

from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from datetime import datetime
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fulfillment.database import get_session
from fulfillment.main import app
from fulfillment.models import (
    Base,
    CheckoutSession,
    CheckoutStatus,
    Order,
    OrderStatus,
    Product,
    utcnow,
)


async def _no_sleep(_: float) -> None:
    return None


@pytest.fixture
def no_sleep() -> Callable[[float], Awaitable[None]]:
    """Drop-in for asyncio.sleep in retry and settle delays."""
    return _no_sleep


@pytest_asyncio.fixture
async def async_engine():
    """Create an async SQLite engine for testing.

    In-memory aiosqlite databases use a single shared connection, so every
    session from session_factory sees the same tables.

    Yields:
        AsyncEngine: Configured test database engine.
    """
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine (expire_on_commit=False as in production)."""
    return async_sessionmaker(bind=async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def async_session(session_factory):
    """Create an async session for testing.

    Yields:
        AsyncSession: Database session for test operations.
    """
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def product(async_session: AsyncSession) -> Product:
    product = Product(id=1, title="Custom Intro Video", description="10 second branded intro")
    async_session.add(product)
    await async_session.commit()
    return product


@pytest.fixture
def make_order(async_session: AsyncSession) -> Callable[..., Awaitable[Order]]:
    """Factory creating committed orders.

    Status is assigned after construction so the model's transition validator
    runs exactly as it would for a real order.
    """

    async def _make(
        order_id: str = "ORD1",
        status: OrderStatus = OrderStatus.PAID,
        product_id: int | None = None,
        created_at: datetime | None = None,
        email: str = "buyer@example.com",
    ) -> Order:
        order = Order(order_id=order_id, product_id=product_id, email=email, amount=49.0)
        order.status = OrderStatus.PAID
        if status is OrderStatus.DELIVERED:
            order.status = OrderStatus.DELIVERED
        elif status is OrderStatus.REVISION:
            order.status = OrderStatus.DELIVERED
            order.status = OrderStatus.REVISION
        elif status is OrderStatus.EXPIRED:
            order.status = OrderStatus.EXPIRED
        if created_at is not None:
            order.created_at = created_at
        async_session.add(order)
        await async_session.commit()
        return order

    return _make


@pytest.fixture
def make_checkout_session(async_session: AsyncSession) -> Callable[..., Awaitable[CheckoutSession]]:
    async def _make(
        checkout_id: str,
        expires_at: datetime,
        plan_id: str | None = None,
        status: CheckoutStatus = CheckoutStatus.PENDING,
        created_at: datetime | None = None,
    ) -> CheckoutSession:
        checkout = CheckoutSession(
            checkout_id=checkout_id,
            plan_id=plan_id,
            expires_at=expires_at,
            status=status,
            created_at=created_at or utcnow(),
        )
        async_session.add(checkout)
        await async_session.commit()
        return checkout

    return _make


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep real credentials and tunables from leaking into tests."""
    for name in (
        "ARCHIVE_ACCESS_KEY",
        "ARCHIVE_SECRET_KEY",
        "ARCHIVE_S3_ENDPOINT",
        "ARCHIVE_DOWNLOAD_BASE",
        "ARCHIVE_SETTLE_SECONDS",
        "ARCHIVE_VERIFY_ATTEMPTS",
        "ARCHIVE_VERIFY_DELAY_SECONDS",
        "WHOP_API_KEY",
        "WHOP_API_BASE",
        "ORDER_EXPIRY_HOURS",
        "CHECKOUT_SWEEP_BATCH_SIZE",
        "EXPIRY_SWEEP_INTERVAL_SECONDS",
        "EXPIRY_SWEEP_ENABLED",
        "SETTINGS_CACHE_TTL_SECONDS",
        "NOTIFY_MAX_CONCURRENCY",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def api_client() -> Iterator[TestClient]:
    """FastAPI test client without the lifespan.

    The database session is a mock; tests install services either on
    ``app.state.services`` or through ``app.dependency_overrides``.
    """

    async def _mock_session() -> AsyncIterator[AsyncSession]:
        yield AsyncMock(spec=AsyncSession)

    app.dependency_overrides[get_session] = _mock_session
    yield TestClient(app)
    app.dependency_overrides.clear()
    if hasattr(app.state, "services"):
        del app.state.services
