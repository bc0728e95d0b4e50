"""Upload pipeline DTOs.

UploadRequest is built from query parameters plus the raw body;
UploadResult is the success response. Failure responses come from
FulfillmentError.to_response().
"""

from pydantic import BaseModel, ConfigDict, Field


class UploadRequest(BaseModel):
    """Customer-file upload parameters (identifiers not yet sanitized)."""

    item_id: str = Field(default="", max_length=200)
    filename: str = Field(default="", max_length=255)
    original_filename: str | None = Field(default=None, max_length=500)
    order_id: str | None = Field(default=None, max_length=64)
    content_type: str | None = None


class UploadResult(BaseModel):
    """Response for an upload that reached the permanent archive."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    url: str
    embed_url: str = Field(..., serialization_alias="embedUrl")
    item_id: str = Field(..., serialization_alias="itemId")
    filename: str
    r2_verified: bool = Field(True, serialization_alias="r2Verified")
    archive_verified: bool = Field(..., serialization_alias="archiveVerified")
    is_video: bool = Field(..., serialization_alias="isVideo")
