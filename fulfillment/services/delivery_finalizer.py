"""Delivery finalizer: attaches archived media to an order.

Merges the delivered media locations into the Order, moves it to delivered,
commits, and only then announces the delivery. A notification failure can
never roll back a committed delivery.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.exceptions import ValidationError
from fulfillment.models import Order, OrderStatus
from fulfillment.schemas.events import CUSTOMER_ORDER_DELIVERED, ORDER_DELIVERED
from fulfillment.schemas.orders import DeliveryRequest
from fulfillment.services.notification_dispatcher import NotificationDispatcher
from fulfillment.services.order_queries import require_order
from fulfillment.utils.logging import get_logger

log = get_logger(__name__)


def delivery_metadata(request: DeliveryRequest) -> dict[str, Any]:
    """Metadata JSON stored alongside the delivered video URL (without deliveredAt)."""
    return {
        "embedUrl": request.embed_url,
        "itemId": request.item_id,
        "subtitlesUrl": request.subtitles_url,
        "tracks": (
            [track.model_dump() for track in request.tracks] if request.tracks else None
        ),
        "archiveVerified": request.archive_verified,
    }


def _is_same_delivery(order: Order, request: DeliveryRequest, metadata: dict[str, Any]) -> bool:
    if order.status is not OrderStatus.DELIVERED:
        return False
    stored = dict(order.delivered_video_metadata or {})
    stored.pop("deliveredAt", None)
    return (
        order.delivered_video_url == request.video_url
        and order.delivered_thumbnail_url == request.thumbnail_url
        and stored == metadata
    )


def delivery_event_payload(order: Order) -> dict[str, Any]:
    metadata = order.delivered_video_metadata or {}
    return {
        "order_id": order.order_id,
        "product_title": order.product_title,
        "email": order.email,
        "status": order.status.value,
        "video_url": order.delivered_video_url,
        "thumbnail_url": order.delivered_thumbnail_url,
        "embed_url": metadata.get("embedUrl"),
        "delivered_at": order.delivered_at.isoformat() if order.delivered_at else None,
    }


class DeliveryFinalizer:
    def __init__(self, dispatcher: NotificationDispatcher | None = None):
        self.dispatcher = dispatcher

    async def finalize(self, session: AsyncSession, request: DeliveryRequest) -> Order:
        """Record delivered media on an order and commit.

        Re-delivering identical media to an already delivered order is a
        no-op: nothing is written and no event is raised.

        Raises:
            ValidationError: order_id or video_url missing.
            NotFoundError: Unknown order.
            InvalidStateTransitionError: Order is expired.
        """
        if not request.order_id or not request.video_url:
            raise ValidationError("orderId and videoUrl required")

        order = await require_order(request.order_id, session)
        metadata = delivery_metadata(request)

        if _is_same_delivery(order, request, metadata):
            log.info("delivery_unchanged", order_id=order.order_id)
            return order

        previous_status = order.status
        order.status = OrderStatus.DELIVERED
        order.delivered_video_url = request.video_url
        order.delivered_thumbnail_url = request.thumbnail_url
        order.revision_requested = False
        delivered_at = order.delivered_at
        order.delivered_video_metadata = {
            **metadata,
            "deliveredAt": delivered_at.isoformat() if delivered_at else None,
        }
        await session.commit()

        log.info(
            "order_delivered",
            order_id=order.order_id,
            from_status=previous_status.value,
            item_id=request.item_id,
            archive_verified=request.archive_verified,
        )

        if self.dispatcher is not None:
            payload = delivery_event_payload(order)
            self.dispatcher.publish(ORDER_DELIVERED, payload)
            self.dispatcher.publish(CUSTOMER_ORDER_DELIVERED, payload)

        return order
