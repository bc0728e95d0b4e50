"""Notification event contract and webhook endpoint configuration.

Events are POSTed as JSON to every enabled endpoint subscribed to the event
type. Receivers (email automation, Slack, etc.) own the actual transport.
"""

import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

ORDER_DELIVERED = "order.delivered"
ORDER_REVISION_REQUESTED = "order.revision_requested"
CUSTOMER_ORDER_DELIVERED = "customer.order.delivered"

EVENT_TYPES = frozenset({ORDER_DELIVERED, ORDER_REVISION_REQUESTED, CUSTOMER_ORDER_DELIVERED})
EVENT_PATTERN = "^(" + "|".join(re.escape(event) for event in sorted(EVENT_TYPES)) + ")$"


class NotificationEvent(BaseModel):
    """Payload sent to webhook endpoints.

    Example:
        {
            "event": "order.delivered",
            "timestamp": "2026-10-19T12:00:00+00:00",
            "order": {"order_id": "A1B2", "product_title": "...", "email": "..."},
            "meta": {"version": "3.0", "source": "fulfillment"}
        }
    """

    event: str = Field(..., pattern=EVENT_PATTERN)
    timestamp: datetime
    order: dict[str, Any]
    meta: dict[str, str] = Field(default_factory=lambda: {"version": "3.0", "source": "fulfillment"})


class WebhookEndpoint(BaseModel):
    """One configured receiver."""

    id: str
    name: str = ""
    url: str
    events: list[str] = Field(default_factory=list)
    secret: str = ""
    enabled: bool = True


class WebhooksConfig(BaseModel):
    """Stored under the ``webhooks_config`` settings key."""

    enabled: bool = False
    endpoints: list[WebhookEndpoint] = Field(default_factory=list)

    def subscribers(self, event: str) -> list[WebhookEndpoint]:
        if not self.enabled:
            return []
        return [e for e in self.endpoints if e.enabled and e.url and event in e.events]
