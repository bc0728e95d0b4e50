"""Order lifecycle manager.

Owns every mutation of an Order after purchase. Status changes go through the
model's state machine (Order.VALID_TRANSITIONS); this service adds the
bookkeeping around each transition and raises the matching events after the
change is committed.

Usage:
    manager = OrderLifecycleManager(DeliveryFinalizer(dispatcher), dispatcher)
    order = await manager.request_revision(session, "A1B2", "Please trim intro")
"""

from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.models import Order, OrderStatus
from fulfillment.schemas.events import ORDER_REVISION_REQUESTED
from fulfillment.schemas.orders import DeliveryRequest
from fulfillment.services.delivery_finalizer import DeliveryFinalizer
from fulfillment.services.notification_dispatcher import NotificationDispatcher
from fulfillment.services.order_queries import require_order
from fulfillment.utils.logging import get_logger

log = get_logger(__name__)


class OrderLifecycleManager:
    """Service for order state transitions and field updates.

    Attributes:
        finalizer: Handles the delivery transition.
        dispatcher: Publishes order events (optional).
    """

    def __init__(
        self,
        finalizer: DeliveryFinalizer,
        dispatcher: NotificationDispatcher | None = None,
    ):
        self.finalizer = finalizer
        self.dispatcher = dispatcher

    async def get_order(self, session: AsyncSession, order_id: str) -> Order:
        """Raises NotFoundError for an unknown order."""
        return await require_order(order_id, session)

    async def deliver(self, session: AsyncSession, request: DeliveryRequest) -> Order:
        return await self.finalizer.finalize(session, request)

    async def request_revision(
        self, session: AsyncSession, order_id: str, reason: str | None = None
    ) -> Order:
        """Move a delivered order into revision.

        Calling again while the order is already in revision changes nothing
        and raises no event.

        Raises:
            NotFoundError: Unknown order.
            InvalidStateTransitionError: Order is paid or expired.
        """
        order = await require_order(order_id, session)

        if order.status is OrderStatus.REVISION:
            log.info("revision_already_requested", order_id=order_id)
            return order

        # Status first: an invalid transition raises before any field changes
        order.status = OrderStatus.REVISION
        order.revision_count += 1
        order.revision_requested = True
        order.revision_reason = reason
        await session.commit()

        log.info(
            "revision_requested",
            order_id=order_id,
            revision_count=order.revision_count,
        )

        if self.dispatcher is not None:
            self.dispatcher.publish(
                ORDER_REVISION_REQUESTED,
                {
                    "order_id": order.order_id,
                    "product_title": order.product_title,
                    "email": order.email,
                    "status": order.status.value,
                    "reason": reason,
                    "revision_count": order.revision_count,
                },
            )

        return order

    async def update_portfolio(self, session: AsyncSession, order_id: str, enabled: bool) -> Order:
        order = await require_order(order_id, session)
        order.portfolio_enabled = enabled
        await session.commit()
        log.info("portfolio_updated", order_id=order_id, portfolio_enabled=enabled)
        return order

    async def update_archive_url(
        self, session: AsyncSession, order_id: str, archive_url: str | None
    ) -> Order:
        order = await require_order(order_id, session)
        order.archive_url = archive_url or None
        await session.commit()
        log.info("archive_url_updated", order_id=order_id, has_url=bool(archive_url))
        return order
