"""
Job-related data models.

Defines the Job model tracking one generation request through its lifecycle.
"""

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID
from pydantic import BaseModel, Field, field_serializer

JobStatus = Literal["pending", "processing", "completed", "failed"]
Orientation = Literal["portrait", "landscape"]

ACTIVE_STATUSES = ("pending", "processing")
TERMINAL_STATUSES = ("completed", "failed")


class Job(BaseModel):
    """Job model representing a video generation request."""

    id: UUID
    user_id: str
    prompt: str = Field(min_length=1, max_length=1000)
    orientation: Orientation = "portrait"
    status: JobStatus = "pending"
    progress: int = Field(default=0, ge=0, le=100, description="Progress percentage 0-100")
    external_job_id: Optional[str] = Field(default=None, description="Provider-side id, set once")
    error_message: Optional[str] = None
    video_id: Optional[UUID] = None
    lease_owner: Optional[str] = Field(default=None, description="Runner instance holding the job")
    lease_expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        """True once the job reached completed or failed."""
        return self.status in TERMINAL_STATUSES

    @field_serializer("id", "video_id")
    def serialize_uuid(self, value: Optional[UUID]) -> Optional[str]:
        """Serialize UUID to string."""
        return str(value) if value else None

    @field_serializer("created_at", "updated_at", "completed_at", "lease_expires_at")
    def serialize_datetime(self, value: Optional[datetime]) -> Optional[str]:
        """Serialize datetime to ISO format string."""
        return value.isoformat() if value else None
