"""001 initial fulfillment schema

Revision ID: 001_initial_fulfillment
Revises:
Create Date: 2026-10-19

Creates products, orders, checkout_sessions and settings. Product rows are
owned by the catalog; they exist here so orders can reference them.
"""

from typing import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial_fulfillment"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ORDER_STATUSES = ("paid", "delivered", "revision", "expired")
CHECKOUT_STATUSES = ("pending", "completed", "expired")


def upgrade() -> None:
    """Create fulfillment tables."""
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("order_id", sa.String(64), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=True),
        sa.Column("email", sa.String(100), nullable=False, server_default=""),
        sa.Column("amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column(
            "status",
            sa.Enum(*ORDER_STATUSES, name="orderstatus"),
            nullable=False,
            server_default="paid",
        ),
        sa.Column("delivered_video_url", sa.String(1000), nullable=True),
        sa.Column("delivered_thumbnail_url", sa.String(1000), nullable=True),
        sa.Column("delivered_video_metadata", sa.JSON(), nullable=True),
        sa.Column("revision_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("revision_requested", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("revision_reason", sa.Text(), nullable=True),
        sa.Column("delivery_time_minutes", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("archive_url", sa.String(1000), nullable=True),
        sa.Column("portfolio_enabled", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="SET NULL"),
        sa.CheckConstraint("revision_count >= 0", name="ck_orders_revision_count_non_negative"),
    )
    op.create_index("ix_orders_order_id", "orders", ["order_id"], unique=True)
    op.create_index("ix_orders_status", "orders", ["status"])
    op.create_index("ix_orders_status_created_at", "orders", ["status", "created_at"])

    op.create_table(
        "checkout_sessions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("checkout_id", sa.String(100), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=True),
        sa.Column("plan_id", sa.String(100), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*CHECKOUT_STATUSES, name="checkoutstatus"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("checkout_id", name="uq_checkout_sessions_checkout_id"),
    )
    op.create_index(
        "ix_checkout_sessions_status_expires_at",
        "checkout_sessions",
        ["status", "expires_at"],
    )

    op.create_table(
        "settings",
        sa.Column("key", sa.String(100), nullable=False),
        sa.Column("value", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )


def downgrade() -> None:
    """Drop fulfillment tables and enum types."""
    op.drop_table("settings")
    op.drop_index("ix_checkout_sessions_status_expires_at", table_name="checkout_sessions")
    op.drop_table("checkout_sessions")
    op.drop_index("ix_orders_status_created_at", table_name="orders")
    op.drop_index("ix_orders_status", table_name="orders")
    op.drop_index("ix_orders_order_id", table_name="orders")
    op.drop_table("orders")
    op.drop_table("products")
    sa.Enum(name="checkoutstatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="orderstatus").drop(op.get_bind(), checkfirst=True)
