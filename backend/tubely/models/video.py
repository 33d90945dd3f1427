"""
Video Pydantic model for Tubely.

A VideoRecord is created by the (out of scope) video creation flow and
mutated here only through its two asset URL fields. Both URLs are absent
until an asset is published and are always absolute http(s) URLs once set.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class VideoRecord(BaseModel):
    """
    Metadata for one uploaded video.

    Attributes:
        id: Immutable video identifier (stored as the Mongo ``_id`` string)
        user_id: Owning user, immutable
        title: Display title
        description: Optional free text description
        thumbnail_url: Public URL of the current thumbnail, or None
        video_url: Public URL of the current video file, or None
        created_at: Creation timestamp (UTC)
        updated_at: Last modification timestamp (UTC)
    """

    id: UUID = Field(..., description="Video identifier")
    user_id: UUID = Field(..., description="Identifier of the owning user")
    title: str = Field(default="", max_length=255, description="Display title")
    description: str | None = Field(default=None, description="Optional description")
    thumbnail_url: str | None = Field(default=None, description="Public thumbnail URL")
    video_url: str | None = Field(default=None, description="Public video file URL")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Creation timestamp (UTC)"
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Last modification timestamp (UTC)"
    )

    model_config = ConfigDict(
        validate_assignment=True,
        json_schema_extra={
            "example": {
                "id": "0b5f2f9e-4c9f-4d6c-9a53-8f0f3f7d2a10",
                "user_id": "6f1c8b0e-9f62-4a5e-8d1c-2b7a4e9c1d33",
                "title": "Boots in the snow",
                "description": None,
                "thumbnail_url": "http://localhost:8091/assets/Q2x1c3RlcjAx.png",
                "video_url": None,
                "created_at": "2026-01-15T10:30:00Z",
                "updated_at": "2026-01-15T10:31:00Z",
            }
        },
    )

    @field_validator("thumbnail_url", "video_url", mode="before")
    @classmethod
    def validate_asset_url(cls, v: Any) -> str | None:
        """An empty string means unset; anything else must be an absolute http(s) URL."""
        if v is None or v == "":
            return None
        if not isinstance(v, str) or not v.startswith(("http://", "https://")):
            raise ValueError(f"Asset URL must be an absolute http(s) URL, got {v!r}")
        return v

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "VideoRecord":
        """Build a record from a ``videos`` collection document."""
        data = dict(document)
        data["id"] = data.pop("_id")
        return cls.model_validate(data)

    def to_document(self) -> dict[str, Any]:
        """Render the record as a ``videos`` collection document."""
        document = self.model_dump(exclude={"id"})
        document["_id"] = str(self.id)
        document["user_id"] = str(self.user_id)
        return document
