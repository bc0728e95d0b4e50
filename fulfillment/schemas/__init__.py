"""Pydantic schemas for validation and serialization."""

from fulfillment.schemas.events import NotificationEvent, WebhookEndpoint, WebhooksConfig
from fulfillment.schemas.orders import (
    ArchiveLinkUpdate,
    DeliveryRequest,
    PortfolioUpdate,
    RevisionRequest,
    SubtitleTrack,
)
from fulfillment.schemas.uploads import UploadRequest, UploadResult

__all__ = [
    "ArchiveLinkUpdate",
    "DeliveryRequest",
    "NotificationEvent",
    "PortfolioUpdate",
    "RevisionRequest",
    "SubtitleTrack",
    "UploadRequest",
    "UploadResult",
    "WebhookEndpoint",
    "WebhooksConfig",
]
