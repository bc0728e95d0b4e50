"""Media fulfillment service.

Durable media delivery pipeline for a digital-goods storefront: staged
uploads, permanent archive storage with durability checks, order delivery
and revision lifecycle, webhook notifications, and a scheduled expiry
reaper.
"""

from fulfillment.database import async_session_factory, get_session
from fulfillment.models import Base, CheckoutSession, Order, Product

__all__ = [
    "Base",
    "CheckoutSession",
    "Order",
    "Product",
    "async_session_factory",
    "get_session",
]
