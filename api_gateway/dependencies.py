"""
FastAPI dependencies.

Authentication, ownership checks, and access to the app-wide services.
"""

from typing import Optional
from uuid import UUID
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from shared.config import settings
from shared.logging import get_logger
from shared.models.job import Job
from shared.models.video import Video
from modules.job_store import JobStore
from modules.video_store import VideoStore
from api_gateway.worker import JobRunner

logger = get_logger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)  # Missing token handled below as 401


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> dict:
    """
    Validate JWT token and return current user.

    Args:
        credentials: HTTP Bearer token credentials (from header)

    Returns:
        Dictionary with user_id (and email when the token carries one)

    Raises:
        HTTPException: 401 if token is invalid or missing
    """
    if not credentials:
        logger.warning("No token provided in Authorization header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authentication token",
            headers={"WWW-Authenticate": "Bearer"}
        )

    token = credentials.credentials
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=["HS256"])
    except JWTError as e:
        logger.warning(
            "JWT validation failed",
            extra={"error_type": type(e).__name__, "token_length": len(token)}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"}
        )

    user_id = payload.get("sub") or payload.get("userId")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing user_id",
            headers={"WWW-Authenticate": "Bearer"}
        )

    user_data = {"user_id": str(user_id)}
    if payload.get("email"):
        user_data["email"] = payload["email"]
    return user_data


def get_job_store(request: Request) -> JobStore:
    """Job store created by the app lifespan."""
    return request.app.state.job_store


def get_video_store(request: Request) -> VideoStore:
    """Video store created by the app lifespan."""
    return request.app.state.video_store


def get_job_runner(request: Request) -> JobRunner:
    """Background job runner created by the app lifespan."""
    return request.app.state.job_runner


def _parse_uuid(value: str, kind: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        # Malformed ids cannot exist, so they are reported like unknown ones
        logger.info(f"Malformed {kind} id requested", extra={"requested_id": value})
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{kind.capitalize()} not found"
        )


async def verify_job_ownership(
    job_id: str,
    current_user: dict = Depends(get_current_user),
    job_store: JobStore = Depends(get_job_store)
) -> Job:
    """
    Verify that the job belongs to the current user.

    Args:
        job_id: Job ID to verify
        current_user: Current user from get_current_user dependency
        job_store: Job store

    Returns:
        Job

    Raises:
        HTTPException: 404 if job not found, 403 if it belongs to someone else
    """
    job = await job_store.get(_parse_uuid(job_id, "job"))
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")

    if job.user_id != current_user["user_id"]:
        logger.warning(
            "Job ownership verification failed",
            extra={"job_id": job_id, "current_user_id": current_user["user_id"]}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Job does not belong to user"
        )
    return job


async def verify_video_ownership(
    video_id: str,
    current_user: dict = Depends(get_current_user),
    video_store: VideoStore = Depends(get_video_store)
) -> Video:
    """
    Verify that the video belongs to the current user.

    Raises:
        HTTPException: 404 if video not found, 403 if it belongs to someone else
    """
    video = await video_store.get(_parse_uuid(video_id, "video"))
    if video is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found")

    if video.user_id != current_user["user_id"]:
        logger.warning(
            "Video ownership verification failed",
            extra={"video_id": video_id, "current_user_id": current_user["user_id"]}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Video does not belong to user"
        )
    return video
