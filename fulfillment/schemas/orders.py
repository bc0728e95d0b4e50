"""Order request DTOs.

Request bodies use the storefront's camelCase field names; Python code uses
snake_case attributes. Validation happens here, at the boundary, before any
service sees the data.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class SubtitleTrack(_CamelModel):
    """A subtitle/caption track attached to a delivered video."""

    src: str = Field(..., min_length=1, max_length=1000)
    label: str | None = Field(default=None, max_length=100)
    srclang: str | None = Field(default=None, max_length=20)
    kind: str = Field(default="subtitles", max_length=20)


class DeliveryRequest(_CamelModel):
    """Operator delivery of finished media to an order."""

    order_id: str = Field(..., alias="orderId", min_length=1, max_length=64)
    video_url: str = Field(..., alias="videoUrl", min_length=1, max_length=1000)
    thumbnail_url: str | None = Field(default=None, alias="thumbnailUrl", max_length=1000)
    embed_url: str | None = Field(default=None, alias="embedUrl", max_length=1000)
    item_id: str | None = Field(default=None, alias="itemId", max_length=200)
    subtitles_url: str | None = Field(default=None, alias="subtitlesUrl", max_length=1000)
    tracks: list[SubtitleTrack] | None = None
    archive_verified: bool | None = Field(default=None, alias="archiveVerified")

    @field_validator("thumbnail_url", "embed_url", "item_id", "subtitles_url", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class RevisionRequest(_CamelModel):
    """Customer request for changes to a delivered order."""

    order_id: str = Field(..., alias="orderId", min_length=1, max_length=64)
    reason: str | None = Field(default=None, max_length=2000)


class PortfolioUpdate(_CamelModel):
    order_id: str = Field(..., alias="orderId", min_length=1, max_length=64)
    portfolio_enabled: bool = Field(..., alias="portfolioEnabled")


class ArchiveLinkUpdate(_CamelModel):
    order_id: str = Field(..., alias="orderId", min_length=1, max_length=64)
    archive_url: str | None = Field(default=None, alias="archiveUrl", max_length=1000)
