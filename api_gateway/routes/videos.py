"""
Video endpoints.

Job creation, job polling, and access to finished videos.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from shared.logging import get_logger
from shared.models.job import Job, JobStatus, Orientation
from shared.models.video import Video, VideoStatus
from modules.job_store import JobStore
from modules.video_store import VideoStore, MAX_PAGE_SIZE
from api_gateway.dependencies import (
    get_current_user,
    get_job_runner,
    get_job_store,
    get_video_store,
    verify_job_ownership,
    verify_video_ownership,
)
from api_gateway.worker import JobRunner

logger = get_logger(__name__)

router = APIRouter()


class CreateVideoRequest(BaseModel):
    """Body of POST /videos."""

    prompt: str = Field(min_length=1, max_length=1000)
    orientation: Orientation = "portrait"

    @field_validator("prompt", mode="before")
    @classmethod
    def strip_prompt(cls, v):
        """Prompt length is checked after trimming."""
        return v.strip() if isinstance(v, str) else v


class JobResponse(BaseModel):
    """Job as returned to clients. Lease bookkeeping stays server-side."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    prompt: str
    orientation: Orientation
    status: JobStatus
    progress: int
    external_job_id: Optional[str] = None
    error_message: Optional[str] = None
    video_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job: Job) -> "JobResponse":
        return cls.model_validate(job)


class CreateVideoResponse(BaseModel):
    job: JobResponse
    message: str


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class VideoListResponse(BaseModel):
    videos: List[Video]
    pagination: Pagination


@router.post("/videos", status_code=status.HTTP_202_ACCEPTED, response_model=CreateVideoResponse)
async def create_video(
    body: CreateVideoRequest,
    current_user: dict = Depends(get_current_user),
    job_store: JobStore = Depends(get_job_store),
    job_runner: JobRunner = Depends(get_job_runner)
):
    """
    Create a generation job and start it in the background.

    Returns before the job has started running; poll GET /videos/jobs/{job_id}.
    """
    job = await job_store.create(current_user["user_id"], body.prompt, body.orientation)
    job_runner.submit(job.id)
    logger.info(
        "Video generation requested",
        extra={"job_id": str(job.id), "user_id": current_user["user_id"], "orientation": job.orientation}
    )
    return CreateVideoResponse(job=JobResponse.from_job(job), message="Video generation started")


@router.get("/videos", response_model=VideoListResponse)
async def list_videos(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    video_status: Optional[VideoStatus] = Query(None, alias="status"),
    current_user: dict = Depends(get_current_user),
    video_store: VideoStore = Depends(get_video_store)
):
    """List the current user's videos, newest first. limit is capped at 100."""
    limit = min(limit, MAX_PAGE_SIZE)
    videos, total = await video_store.list_by_user(
        current_user["user_id"], page=page, limit=limit, status=video_status
    )
    return VideoListResponse(
        videos=videos,
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=(total + limit - 1) // limit,
        ),
    )


@router.get("/videos/jobs", response_model=List[JobResponse])
async def list_active_jobs(
    current_user: dict = Depends(get_current_user),
    job_store: JobStore = Depends(get_job_store)
):
    """Pending and processing jobs of the current user, newest first."""
    jobs = await job_store.list_active(current_user["user_id"])
    return [JobResponse.from_job(job) for job in jobs]


@router.get("/videos/jobs/{job_id}", response_model=JobResponse)
async def get_job(job: Job = Depends(verify_job_ownership)):
    """Poll one job (status, progress, error_message, video_id)."""
    return JobResponse.from_job(job)


@router.get("/videos/{video_id}", response_model=Video)
async def get_video(video: Video = Depends(verify_video_ownership)):
    """Fetch a finished video."""
    return video
