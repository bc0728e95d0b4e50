"""Business logic services for the delivery pipeline and order lifecycle."""

from fulfillment.services.archive_uploader import ArchiveUploader
from fulfillment.services.delivery_finalizer import DeliveryFinalizer
from fulfillment.services.durability_verifier import DurabilityVerifier
from fulfillment.services.expiry_reaper import ExpiryReaper, SweepResult
from fulfillment.services.ingest_gateway import IngestGateway, MediaArtifact
from fulfillment.services.media_pipeline import MediaPipeline
from fulfillment.services.notification_dispatcher import NotificationDispatcher
from fulfillment.services.order_lifecycle import OrderLifecycleManager

__all__ = [
    "ArchiveUploader",
    "DeliveryFinalizer",
    "DurabilityVerifier",
    "ExpiryReaper",
    "IngestGateway",
    "MediaArtifact",
    "MediaPipeline",
    "NotificationDispatcher",
    "OrderLifecycleManager",
    "SweepResult",
]
