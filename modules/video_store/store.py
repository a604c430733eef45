"""
Video persistence.
"""

from typing import Any, Dict, List, Optional, Tuple, Union
from uuid import UUID, uuid4

import pydantic

from shared.database import DatabaseClient, utcnow
from shared.errors import ValidationError
from shared.logging import get_logger
from shared.models.video import Video

logger = get_logger("video_store")

TABLE = "videos"
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class VideoStore:
    """Create and read rows of the videos table."""

    def __init__(self, db: DatabaseClient):
        self.db = db

    async def create(
        self,
        user_id: str,
        prompt: str,
        orientation: str,
        model_used: str,
        video_url: str,
        status: str = "completed",
        thumbnail_url: Optional[str] = None,
        duration: Optional[float] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Video:
        """
        Insert a video record.

        Raises:
            ValidationError: If the URL is not absolute or a field is invalid
        """
        now = utcnow()
        try:
            video = Video(
                id=uuid4(),
                user_id=user_id,
                prompt=prompt,
                orientation=orientation,
                model_used=model_used,
                video_url=video_url,
                thumbnail_url=thumbnail_url,
                duration=duration,
                status=status,
                metadata=metadata,
                created_at=now,
                updated_at=now,
            )
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid video record: {e.errors()[0]['msg']}") from e

        row = video.model_dump(mode="json")
        result = await self.db.table(TABLE).insert(row).execute()
        created = Video.model_validate(result.data[0]) if result.data else video
        logger.info("Video created", extra={"video_id": str(created.id), "user_id": user_id})
        return created

    async def get(self, video_id: Union[UUID, str]) -> Optional[Video]:
        """Fetch a video by id, or None if it does not exist."""
        result = await self.db.table(TABLE).select("*").eq("id", str(video_id)).limit(1).execute()
        if not result.data:
            return None
        return Video.model_validate(result.data[0])

    async def list_by_user(
        self,
        user_id: str,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        status: Optional[str] = None,
    ) -> Tuple[List[Video], int]:
        """
        Page through a user's videos, newest first.

        Args:
            user_id: Owning user id
            page: 1-based page number
            limit: Page size, capped at MAX_PAGE_SIZE
            status: Optional status filter

        Returns:
            (videos on the page, total number of matching videos)
        """
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        offset = (page - 1) * limit

        query = self.db.table(TABLE).select("*", count="exact").eq("user_id", user_id)
        if status:
            query = query.eq("status", status)
        result = await query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()

        videos = [Video.model_validate(row) for row in result.data or []]
        total = result.count if result.count is not None else len(videos)
        return videos, total
