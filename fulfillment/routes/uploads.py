"""Customer-file upload route.

- POST /api/v1/uploads/customer-file?itemId=&filename=[&originalFilename=][&orderId=]

The request body is the raw file. The response tells the caller how far the
upload got: 200 when archived (archiveVerified may be false), otherwise a
stage-tagged error rendered by the FulfillmentError handler.
"""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.database import get_session
from fulfillment.dependencies import get_media_pipeline
from fulfillment.schemas.uploads import UploadRequest
from fulfillment.services.media_pipeline import MediaPipeline
from fulfillment.utils.logging import bind_context, get_logger

log = get_logger(__name__)
router = APIRouter(prefix="/api/v1/uploads", tags=["uploads"])


@router.post("/customer-file")
async def upload_customer_file(
    request: Request,
    item_id: str = Query("", alias="itemId", max_length=200),
    filename: str = Query("", max_length=255),
    original_filename: str | None = Query(None, alias="originalFilename", max_length=500),
    order_id: str | None = Query(None, alias="orderId", max_length=64),
    pipeline: MediaPipeline = Depends(get_media_pipeline),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Stage, archive and verify one file.

    Returns:
        200 OK: {success, url, embedUrl, itemId, filename, r2Verified, archiveVerified, isVideo}
        400: Missing identifiers, empty or oversized payload
        500: Staging failure or missing archive credentials
        502: Archive rejected or unreachable (r2Uploaded: true)
    """
    upload = UploadRequest(
        item_id=item_id,
        filename=filename,
        original_filename=original_filename,
        order_id=order_id,
        content_type=request.headers.get("content-type"),
    )
    bind_context(item_id=item_id, order_id=order_id)

    data = await request.body()
    result = await pipeline.run(db, upload, data)
    return JSONResponse(content=result.model_dump(by_alias=True))
