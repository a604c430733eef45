"""
Data models for the video generation job service.

This module exports all Pydantic models shared by the job pipeline and the API.
"""

from .job import Job, JobStatus, Orientation, ACTIVE_STATUSES, TERMINAL_STATUSES
from .video import Video, VideoStatus

__all__ = [
    # Job models
    "Job",
    "JobStatus",
    "Orientation",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    # Video models
    "Video",
    "VideoStatus",
]
