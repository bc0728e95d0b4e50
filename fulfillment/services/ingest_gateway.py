"""Ingest gateway: stage 1 of the media delivery pipeline.

Validates an incoming payload and lands it in the ephemeral staging store,
then reads it back to confirm the staged bytes are complete. No permanent
archive upload is attempted from bytes that failed this check.

Validation order:
    1. item_id / filename present after sanitizing  -> ValidationError
    2. size within the limit for the file type      -> CapacityError
    3. payload non-empty                            -> ValidationError

Usage:
    gateway = IngestGateway(FilesystemStagingStore(Path("/app/staging")))
    artifact = await gateway.ingest(request, data)
"""

from dataclasses import dataclass

from fulfillment.clients.staging import StagingStore
from fulfillment.exceptions import (
    CapacityError,
    StagingFailure,
    StagingVerifyFailure,
    ValidationError,
)
from fulfillment.schemas.uploads import UploadRequest
from fulfillment.utils.logging import get_logger
from fulfillment.utils.media import (
    is_video_filename,
    max_size_for,
    resolve_content_type,
    sanitize_identifier,
    size_label,
)

log = get_logger(__name__)


def staging_key(item_id: str, filename: str) -> str:
    """Deterministic staging key for an item's file."""
    return f"temp/{item_id}/{filename}"


@dataclass
class MediaArtifact:
    """Transient record of one upload moving through the pipeline.

    Never persisted on its own; on delivery its locations are merged into the
    Order.

    Attributes:
        key: Staging key (temp/{item_id}/{filename}).
        item_id: Sanitized archive item identifier.
        filename: Sanitized filename.
        content_type: Resolved MIME type.
        size_bytes: Byte length confirmed by read-back.
        is_video: Extension-based video classification.
        staging_location: Staging URI.
        permanent_location: Archive download URL once uploaded.
        embed_location: Archive details URL once uploaded.
        verified: Whether the archive confirmed the object is retrievable.
    """

    key: str
    item_id: str
    filename: str
    content_type: str
    size_bytes: int
    is_video: bool
    staging_location: str
    permanent_location: str | None = None
    embed_location: str | None = None
    verified: bool = False


class IngestGateway:
    """Validates uploads and writes them to the staging store."""

    def __init__(self, store: StagingStore):
        self.store = store

    def validate(self, request: UploadRequest, data: bytes) -> tuple[str, str, bool]:
        """Sanitize identifiers and enforce size rules. Performs no I/O.

        Returns:
            (item_id, filename, is_video) after sanitizing.

        Raises:
            ValidationError: Missing identifiers or empty payload.
            CapacityError: Payload larger than the limit for its type.
        """
        item_id = sanitize_identifier(request.item_id)
        filename = sanitize_identifier(request.filename)

        # Dot-only names would resolve to a directory, not an object
        if not item_id.strip(".") or not filename.strip("."):
            raise ValidationError("itemId and filename required")

        is_video = is_video_filename(filename)
        max_size = max_size_for(filename)
        size = len(data)

        if size > max_size:
            log.warning(
                "upload_too_large",
                item_id=item_id,
                filename=filename,
                size_bytes=size,
                max_bytes=max_size,
            )
            kind = "videos" if is_video else "files"
            raise CapacityError(
                f"File too large. Maximum file size is {size_label(max_size)} for {kind}.",
                file_size=size,
                max_size=max_size,
                file_type="video" if is_video else "file",
            )

        if size == 0:
            raise ValidationError("Empty file - please select a valid file")

        return item_id, filename, is_video

    async def ingest(self, request: UploadRequest, data: bytes) -> MediaArtifact:
        """Validate, stage, and read back an upload.

        Re-ingesting the same item_id/filename overwrites the staged object.

        Raises:
            ValidationError, CapacityError: Before any write.
            StagingFailure: The staging write failed.
            StagingVerifyFailure: The staged object is missing or incomplete.
        """
        item_id, filename, is_video = self.validate(request, data)
        content_type = resolve_content_type(filename, request.content_type)
        key = staging_key(item_id, filename)

        log.info(
            "staging_upload_started",
            key=key,
            size_mb=round(len(data) / 1024 / 1024, 2),
            content_type=content_type,
        )

        try:
            await self.store.put(key, data, content_type)
        except (OSError, ValueError) as e:
            log.error("staging_upload_failed", key=key, error=str(e))
            raise StagingFailure(
                f"Failed to upload to temp storage: {e}", details=type(e).__name__
            ) from e

        try:
            staged = await self.store.get(key)
        except (OSError, ValueError) as e:
            log.error("staging_verify_failed", key=key, error=str(e))
            raise StagingVerifyFailure(
                f"R2 upload verification failed: {e}", details=type(e).__name__
            ) from e

        if staged is None:
            log.error("staging_verify_failed", key=key, error="object missing after write")
            raise StagingVerifyFailure(
                "R2 upload verification failed: File not found in R2 after upload"
            )
        if staged.size != len(data):
            log.error(
                "staging_verify_failed",
                key=key,
                expected_bytes=len(data),
                staged_bytes=staged.size,
            )
            raise StagingVerifyFailure(
                "R2 upload verification failed: staged size mismatch",
                details=f"expected {len(data)} bytes, found {staged.size}",
            )

        log.info("staging_upload_verified", key=key, size_bytes=staged.size)

        return MediaArtifact(
            key=key,
            item_id=item_id,
            filename=filename,
            content_type=content_type,
            size_bytes=staged.size,
            is_video=is_video,
            staging_location=self.store.location_for(key),
        )
