"""Service wiring and FastAPI dependency providers.

Long-lived clients and services are built once per process by
``build_services`` (called from the app lifespan) and stored on
``app.state``. Routes receive them through the ``get_*`` providers below,
which tests replace via ``app.dependency_overrides``.
"""

from dataclasses import dataclass
from pathlib import Path

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fulfillment.clients.archive import ArchiveClient
from fulfillment.clients.staging import FilesystemStagingStore
from fulfillment.clients.whop import WhopClient
from fulfillment.config import get_archive_credentials, get_staging_root, get_whop_api_key
from fulfillment.exceptions import ConfigurationError
from fulfillment.services.archive_uploader import ArchiveUploader
from fulfillment.services.delivery_finalizer import DeliveryFinalizer
from fulfillment.services.durability_verifier import DurabilityVerifier
from fulfillment.services.expiry_reaper import ExpiryReaper
from fulfillment.services.ingest_gateway import IngestGateway
from fulfillment.services.media_pipeline import MediaPipeline
from fulfillment.services.notification_dispatcher import NotificationDispatcher
from fulfillment.services.order_lifecycle import OrderLifecycleManager
from fulfillment.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class Services:
    """Process-wide clients and services."""

    lifecycle: OrderLifecycleManager
    dispatcher: NotificationDispatcher | None = None
    media_pipeline: MediaPipeline | None = None
    reaper: ExpiryReaper | None = None
    archive_client: ArchiveClient | None = None
    whop_client: WhopClient | None = None

    async def close(self) -> None:
        """Drain notifications and close HTTP clients."""
        if self.dispatcher is not None:
            await self.dispatcher.close()
        if self.archive_client is not None:
            await self.archive_client.close()
        if self.whop_client is not None:
            await self.whop_client.close()


def build_services(session_factory: async_sessionmaker[AsyncSession] | None) -> Services:
    """Build services from environment configuration.

    Missing optional configuration disables the matching feature instead of
    failing startup: no archive credentials means uploads answer with a
    ConfigurationError, no database means no notifications or reaper.
    """
    dispatcher = NotificationDispatcher(session_factory) if session_factory else None
    lifecycle = OrderLifecycleManager(DeliveryFinalizer(dispatcher), dispatcher)

    archive_client = None
    media_pipeline = None
    credentials = get_archive_credentials()
    if credentials:
        archive_client = ArchiveClient(*credentials)
        media_pipeline = MediaPipeline(
            IngestGateway(FilesystemStagingStore(Path(get_staging_root()))),
            ArchiveUploader(archive_client),
            DurabilityVerifier(archive_client),
        )
    else:
        log.warning("archive_uploads_disabled", reason="ARCHIVE_ACCESS_KEY/SECRET_KEY not set")

    whop_api_key = get_whop_api_key()
    whop_client = WhopClient(whop_api_key) if whop_api_key else None

    reaper = ExpiryReaper(session_factory, whop_client) if session_factory else None
    if reaper is None:
        log.warning("expiry_reaper_disabled", reason="DATABASE_URL not set")

    return Services(
        lifecycle=lifecycle,
        dispatcher=dispatcher,
        media_pipeline=media_pipeline,
        reaper=reaper,
        archive_client=archive_client,
        whop_client=whop_client,
    )


def _services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise ConfigurationError("Service not initialized")
    return services


def get_lifecycle(request: Request) -> OrderLifecycleManager:
    return _services(request).lifecycle


def get_media_pipeline(request: Request) -> MediaPipeline:
    """Raises ConfigurationError when archive credentials are missing."""
    pipeline = _services(request).media_pipeline
    if pipeline is None:
        raise ConfigurationError("Archive.org credentials not configured")
    return pipeline


def get_reaper(request: Request) -> ExpiryReaper:
    reaper = _services(request).reaper
    if reaper is None:
        raise ConfigurationError("Expiry reaper not configured")
    return reaper


def get_dispatcher(request: Request) -> NotificationDispatcher:
    dispatcher = _services(request).dispatcher
    if dispatcher is None:
        raise ConfigurationError("Notifications not configured")
    return dispatcher
