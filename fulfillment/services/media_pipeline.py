"""Media pipeline: runs one customer-file upload through every stage.

    ingest (staging write + read-back)
        → archive upload
        → durability verification (soft)

Each stage raises its own stage-tagged FulfillmentError, so the response
tells the caller how far the upload got. The pipeline itself never touches
the Order; delivery is a separate, explicit call.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.schemas.uploads import UploadRequest, UploadResult
from fulfillment.services.archive_uploader import ArchiveUploader, resolve_description
from fulfillment.services.durability_verifier import DurabilityVerifier
from fulfillment.services.ingest_gateway import IngestGateway
from fulfillment.utils.logging import get_logger

log = get_logger(__name__)


class MediaPipeline:
    def __init__(
        self,
        gateway: IngestGateway,
        uploader: ArchiveUploader,
        verifier: DurabilityVerifier,
    ):
        self.gateway = gateway
        self.uploader = uploader
        self.verifier = verifier

    async def run(
        self, session: AsyncSession, request: UploadRequest, data: bytes
    ) -> UploadResult:
        """Stage, archive and verify one upload.

        Raises:
            ValidationError, CapacityError: Rejected before any write.
            StagingFailure, StagingVerifyFailure: Nothing reached the archive.
            ArchiveUploadFailure, ArchiveConnectError: Staged, not archived.
        """
        artifact = await self.gateway.ingest(request, data)

        description = await resolve_description(
            session, artifact.item_id, artifact.is_video, order_id=request.order_id
        )
        permanent_url = await self.uploader.upload(
            artifact,
            data,
            description,
            title=request.original_filename or artifact.filename,
        )

        artifact.verified = await self.verifier.verify(permanent_url)

        log.info(
            "media_pipeline_completed",
            item_id=artifact.item_id,
            filename=artifact.filename,
            is_video=artifact.is_video,
            archive_verified=artifact.verified,
        )

        return UploadResult(
            url=permanent_url,
            embed_url=artifact.embed_location or "",
            item_id=artifact.item_id,
            filename=artifact.filename,
            archive_verified=artifact.verified,
            is_video=artifact.is_video,
        )
