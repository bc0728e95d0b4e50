"""Archive uploader: stage 2 of the media delivery pipeline.

Pushes staged bytes to the permanent archive in one PUT, with descriptive
metadata derived from the order the upload belongs to.
"""

import re

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.clients.archive import ArchiveClient
from fulfillment.exceptions import ArchiveConnectError, ArchiveUploadFailure
from fulfillment.services.ingest_gateway import MediaArtifact
from fulfillment.services.order_queries import find_order
from fulfillment.utils.logging import get_logger
from fulfillment.utils.media import normalize_archive_meta_value

log = get_logger(__name__)

# Item ids generated by the delivery UI: delivery_{orderId}_{timestamp}
_DELIVERY_ITEM_ID = re.compile(r"^delivery_(.+?)_\d+$")


def order_id_from_item_id(item_id: str) -> str | None:
    """Extract the order id from a delivery item id, if it has that shape.

    Example:
        >>> order_id_from_item_id("delivery_A1B2_1700000000")
        'A1B2'
    """
    match = _DELIVERY_ITEM_ID.match(item_id)
    return match.group(1) if match else None


def describe_order(order_id: str, product_title: str, product_description: str | None) -> str:
    if product_description:
        if product_title:
            return f"{product_title} - {product_description}"
        return product_description
    return f"Order #{order_id} - {product_title or 'Video Delivery'}"


async def resolve_description(
    session: AsyncSession,
    item_id: str,
    is_video: bool,
    order_id: str | None = None,
) -> str:
    """Build the archive description for an upload.

    Falls back to a generic per-order description when the order cannot be
    loaded, and to a generic system description without any order id.
    """
    order_id = order_id or order_id_from_item_id(item_id)
    if not order_id:
        kind = "Video" if is_video else "File"
        return f"{kind} uploaded via order delivery system"

    try:
        order = await find_order(order_id, session)
    except SQLAlchemyError as e:
        log.warning("archive_description_lookup_failed", order_id=order_id, error=str(e))
        order = None

    if order is None:
        return f"Order #{order_id} video delivery"

    product = order.product
    return describe_order(
        order_id,
        product.title if product is not None else "",
        product.description if product is not None else None,
    )


def build_metadata_headers(artifact: MediaArtifact, title: str, description: str) -> dict[str, str]:
    """Archive metadata headers for one upload."""
    headers = {
        "Content-Type": artifact.content_type,
        "x-archive-auto-make-bucket": "1",
        "x-archive-meta-mediatype": "movies" if artifact.is_video else "data",
        "x-archive-meta-collection": "opensource_movies" if artifact.is_video else "opensource",
        "x-archive-meta-title": title,
        "x-archive-meta-description": description,
        "x-archive-meta-subject": "video; delivery",
        "x-archive-meta-language": "eng",
    }
    return {name: normalize_archive_meta_value(value) for name, value in headers.items()}


class ArchiveUploader:
    """Uploads staged artifacts to the permanent archive."""

    def __init__(self, client: ArchiveClient):
        self.client = client

    async def upload(
        self,
        artifact: MediaArtifact,
        data: bytes,
        description: str,
        title: str | None = None,
    ) -> str:
        """PUT the payload and record its permanent and embed locations.

        Returns:
            The permanent download URL.

        Args:
            artifact: Staged artifact from the ingest gateway.
            data: The same bytes that were staged.
            description: Archive description.
            title: Archive title (defaults to the sanitized filename).

        Raises:
            ArchiveUploadFailure: The archive answered with a non-2xx status.
            ArchiveConnectError: The archive could not be reached.
        """
        headers = build_metadata_headers(artifact, title or artifact.filename, description)

        log.info(
            "archive_upload_started",
            item_id=artifact.item_id,
            filename=artifact.filename,
            size_mb=round(artifact.size_bytes / 1024 / 1024, 2),
            mediatype=headers["x-archive-meta-mediatype"],
        )

        try:
            response = await self.client.put_object(
                artifact.item_id, artifact.filename, data, headers
            )
        except httpx.TransportError as e:
            log.error(
                "archive_connect_failed",
                item_id=artifact.item_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ArchiveConnectError(
                f"Failed to connect to Archive.org: {e}",
                details="File is safely stored in temporary storage. Please try again.",
            ) from e

        if not response.is_success:
            body = response.text
            log.error(
                "archive_upload_rejected",
                item_id=artifact.item_id,
                status_code=response.status_code,
                body=body[:500],
            )
            raise ArchiveUploadFailure(
                f"Archive.org upload failed: {response.status_code}",
                status=response.status_code,
                details=body,
            )

        permanent_url = self.client.download_url(artifact.item_id, artifact.filename)
        artifact.permanent_location = permanent_url
        artifact.embed_location = self.client.embed_url(artifact.item_id)
        log.info("archive_upload_completed", item_id=artifact.item_id, url=permanent_url)
        return permanent_url
