"""
Video data models.

Defines the Video model for finished artifacts.
"""

from datetime import datetime
from typing import Literal, Optional, Dict, Any
from urllib.parse import urlparse
from uuid import UUID
from pydantic import BaseModel, Field, field_serializer, field_validator

from .job import Orientation

VideoStatus = Literal["completed", "failed"]


def _require_absolute_url(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Invalid video URL: {value}")
    return value


class Video(BaseModel):
    """Finished video artifact produced by a completed job."""

    id: UUID
    user_id: str
    prompt: str
    orientation: Orientation
    model_used: str
    video_url: str
    thumbnail_url: Optional[str] = None
    duration: Optional[float] = Field(default=None, ge=0, description="Duration in seconds")
    status: VideoStatus = "completed"
    metadata: Optional[Dict[str, Any]] = Field(default=None, description="JSONB metadata")
    created_at: datetime
    updated_at: datetime

    @field_validator("video_url")
    @classmethod
    def validate_video_url(cls, v: str) -> str:
        """Artifact URL must be absolute (scheme and host)."""
        return _require_absolute_url(v)

    @field_validator("thumbnail_url")
    @classmethod
    def validate_thumbnail_url(cls, v: Optional[str]) -> Optional[str]:
        """Thumbnail URL, when present, must be absolute too."""
        if v is None:
            return v
        return _require_absolute_url(v)

    @field_serializer("id")
    def serialize_uuid(self, value: UUID) -> str:
        """Serialize UUID to string."""
        return str(value)

    @field_serializer("created_at", "updated_at")
    def serialize_datetime(self, value: datetime) -> str:
        """Serialize datetime to ISO format string."""
        return value.isoformat()
