"""SQLAlchemy 2.0 ORM models.

This module contains all SQLAlchemy models for the fulfillment service.
All models use the Mapped[type] annotation pattern required by SQLAlchemy 2.0.

Ownership:
    Order rows are mutated only by the order lifecycle and delivery services.
    Product rows are read-only here (catalog CRUD lives elsewhere).
    CheckoutSession rows are created by the payment integration and reaped
    by the expiry sweep.
"""

import enum
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, validates

from fulfillment.exceptions import InvalidStateTransitionError


def utcnow() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


class OrderStatus(enum.Enum):
    """Order fulfillment state machine.

    Flow:
        paid → delivered (operator delivers media)
        delivered → revision (customer requests changes)
        revision → delivered (operator re-delivers)
        delivered → delivered (re-delivery overwrites media)
        paid → expired (abandoned past the expiry window, irreversible)

    Terminal States:
        expired
    """

    PAID = "paid"
    DELIVERED = "delivered"
    REVISION = "revision"
    EXPIRED = "expired"


class CheckoutStatus(enum.Enum):
    """Provider checkout session status.

    pending sessions become completed via the payment webhook (external) or
    expired via the expiry sweep once the provider confirms deletion.
    """

    PENDING = "pending"
    COMPLETED = "completed"
    EXPIRED = "expired"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Product(Base):
    """Catalog product (read-only view used for archive descriptions and events)."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, title={self.title!r})>"


class Order(Base):
    """Customer order and its delivered media.

    Attributes:
        id: Surrogate primary key.
        order_id: External-facing order identifier (unique).
        product_id: Purchased product (nullable for manual orders).
        email: Customer email used in notification events.
        amount: Amount paid.
        status: Fulfillment status (see OrderStatus).
        delivered_video_url: Permanent archive download URL.
        delivered_thumbnail_url: Optional thumbnail URL.
        delivered_video_metadata: embedUrl, itemId, subtitlesUrl, tracks,
            deliveredAt, archiveVerified.
        revision_count: Number of revisions requested (monotonic).
        revision_requested: Whether a revision is outstanding.
        revision_reason: Reason given for the latest revision request.
        delivery_time_minutes: Promised delivery window.
        archive_url: Operator-maintained archive link.
        portfolio_enabled: Whether the delivery may be shown publicly.
        created_at: Order creation time (drives expiry).
        delivered_at: Set iff status is delivered.
    """

    __tablename__ = "orders"

    VALID_TRANSITIONS = {
        OrderStatus.PAID: [OrderStatus.DELIVERED, OrderStatus.EXPIRED],
        OrderStatus.DELIVERED: [OrderStatus.DELIVERED, OrderStatus.REVISION],
        OrderStatus.REVISION: [OrderStatus.DELIVERED],
        OrderStatus.EXPIRED: [],  # Terminal state
    }

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    product_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
    )
    email: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    status: Mapped[OrderStatus] = mapped_column(
        Enum(
            OrderStatus,
            native_enum=True,
            name="orderstatus",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=OrderStatus.PAID,
        index=True,
    )

    # Delivered media (populated only after the archive upload succeeded)
    delivered_video_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    delivered_thumbnail_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    delivered_video_metadata: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    revision_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    revision_requested: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    revision_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    delivery_time_minutes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=60, server_default="60"
    )
    archive_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    portfolio_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    product: Mapped["Product | None"] = relationship("Product", lazy="joined")

    __table_args__ = (
        # Expiry sweep: WHERE status = 'paid' AND created_at < cutoff
        Index("ix_orders_status_created_at", "status", "created_at"),
        CheckConstraint("revision_count >= 0", name="ck_orders_revision_count_non_negative"),
    )

    @validates("status")
    def validate_status_change(self, key: str, value: OrderStatus) -> OrderStatus:
        """Enforce VALID_TRANSITIONS and keep delivered_at in step with status.

        Entering delivered stamps delivered_at; any other status clears it, so
        delivered_at is set if and only if status is delivered.

        Raises:
            InvalidStateTransitionError: If the transition is not allowed.
        """
        current = self.status
        if current is not None:
            allowed_transitions = self.VALID_TRANSITIONS.get(current, [])
            if value not in allowed_transitions:
                raise InvalidStateTransitionError(
                    f"Invalid transition: {current.value} → {value.value}",
                    from_status=current,
                    to_status=value,
                )

        if value is OrderStatus.DELIVERED:
            self.delivered_at = utcnow()
        else:
            self.delivered_at = None
        return value

    @property
    def product_title(self) -> str:
        return self.product.title if self.product is not None else ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the buyer order view and notification payloads."""
        return {
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_title": self.product_title,
            "email": self.email,
            "amount": self.amount,
            "status": self.status.value,
            "delivered_video_url": self.delivered_video_url,
            "delivered_thumbnail_url": self.delivered_thumbnail_url,
            "delivered_video_metadata": self.delivered_video_metadata,
            "revision_count": self.revision_count,
            "revision_requested": self.revision_requested,
            "delivery_time_minutes": self.delivery_time_minutes,
            "archive_url": self.archive_url,
            "portfolio_enabled": self.portfolio_enabled,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"<Order(order_id={self.order_id!r}, status={self.status.value!r}, "
            f"revision_count={self.revision_count})>"
        )


class CheckoutSession(Base):
    """Provider checkout session awaiting completion.

    Attributes:
        checkout_id: Provider checkout session ID (unique).
        product_id: Product being purchased.
        plan_id: Provider plan created for this checkout (nullable).
        expires_at: When the session stops being usable.
        status: pending, completed, or expired.
        completed_at: When the session left pending.
    """

    __tablename__ = "checkout_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    checkout_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    product_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    plan_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[CheckoutStatus] = mapped_column(
        Enum(
            CheckoutStatus,
            native_enum=True,
            name="checkoutstatus",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=CheckoutStatus.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        # Checkout sweep: WHERE status = 'pending' AND expires_at < now ORDER BY created_at
        Index("ix_checkout_sessions_status_expires_at", "status", "expires_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<CheckoutSession(checkout_id={self.checkout_id!r}, "
            f"status={self.status.value!r}, plan_id={self.plan_id!r})>"
        )


class Setting(Base):
    """Key/value settings row (JSON value), e.g. the webhook endpoint config."""

    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<Setting(key={self.key!r})>"
