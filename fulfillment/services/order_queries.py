"""Order lookups shared by the lifecycle, delivery and upload services."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.exceptions import NotFoundError
from fulfillment.models import Order


async def find_order(order_id: str, session: AsyncSession) -> Order | None:
    """Get order by external order_id, with its product eagerly loaded.

    populate_existing refreshes an instance already in the identity map, so
    callers always see the committed row state.
    """
    result = await session.execute(
        select(Order)
        .where(Order.order_id == order_id)
        .execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


async def require_order(order_id: str, session: AsyncSession) -> Order:
    """Get order by order_id.

    Raises:
        NotFoundError: If no order has this order_id.
    """
    order = await find_order(order_id, session)
    if order is None:
        raise NotFoundError(f"Order not found: {order_id}")
    return order
