"""
Job persistence.

Every status write is conditional on the status the caller expects the row to
have, so a racing second writer finds zero matching rows and is rejected with
InvalidStateTransitionError instead of overwriting.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Union
from uuid import UUID, uuid4

from shared.config import settings
from shared.database import DatabaseClient, utcnow
from shared.errors import (
    InvalidProgressError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from shared.logging import get_logger
from shared.models.job import ACTIVE_STATUSES, TERMINAL_STATUSES, Job
from modules.job_store.state_machine import ensure_transition

logger = get_logger("job_store")

TABLE = "video_jobs"
RESTART_MESSAGE = "Job was interrupted by server restart"
MAX_PROMPT_LENGTH = 1000
ORIENTATIONS = ("portrait", "landscape")

JobId = Union[UUID, str]


class JobStore:
    """Create, read and conditionally update rows of the video_jobs table."""

    def __init__(self, db: DatabaseClient, lease_duration: Optional[timedelta] = None):
        self.db = db
        if lease_duration is None:
            lease_duration = timedelta(minutes=settings.stuck_job_threshold_minutes)
        self.lease_duration = lease_duration

    async def create(self, user_id: str, prompt: str, orientation: str = "portrait") -> Job:
        """
        Insert a new pending job.

        Args:
            user_id: Owning user id from the identity provider
            prompt: Prompt text, trimmed, 1-1000 characters
            orientation: "portrait" or "landscape"

        Returns:
            Created job (status=pending, progress=0)

        Raises:
            ValidationError: If prompt or orientation are invalid
        """
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValidationError("Prompt is required")
        if len(prompt) > MAX_PROMPT_LENGTH:
            raise ValidationError(f"Prompt must be at most {MAX_PROMPT_LENGTH} characters")
        if orientation not in ORIENTATIONS:
            raise ValidationError(f"Orientation must be one of: {', '.join(ORIENTATIONS)}")

        now = utcnow().isoformat()
        row = {
            "id": str(uuid4()),
            "user_id": user_id,
            "prompt": prompt,
            "orientation": orientation,
            "status": "pending",
            "progress": 0,
            "created_at": now,
            "updated_at": now,
        }
        result = await self.db.table(TABLE).insert(row).execute()
        job = Job.model_validate(result.data[0] if result.data else row)
        logger.info("Job created", extra={"job_id": str(job.id), "user_id": user_id})
        return job

    async def get(self, job_id: JobId) -> Optional[Job]:
        """Fetch a job by id, or None if it does not exist."""
        result = await self.db.table(TABLE).select("*").eq("id", str(job_id)).limit(1).execute()
        if not result.data:
            return None
        return Job.model_validate(result.data[0])

    async def list_active(self, user_id: str) -> List[Job]:
        """Pending and processing jobs of a user, newest first."""
        result = await (
            self.db.table(TABLE)
            .select("*")
            .eq("user_id", user_id)
            .in_("status", list(ACTIVE_STATUSES))
            .order("created_at", desc=True)
            .execute()
        )
        return [Job.model_validate(row) for row in result.data or []]

    async def update_progress(self, job_id: JobId, progress: int) -> Job:
        """
        Record a progress heartbeat for a processing job.

        Also pushes the lease expiry forward, so a job that keeps reporting
        progress is never considered orphaned.

        Raises:
            InvalidProgressError: If progress is outside 0-100 (nothing is written)
            InvalidStateTransitionError: If the job is no longer processing
            NotFoundError: If the job does not exist
        """
        if isinstance(progress, bool) or not isinstance(progress, int) or not 0 <= progress <= 100:
            raise InvalidProgressError(progress)

        now = utcnow()
        result = await (
            self.db.table(TABLE)
            .update({
                "progress": progress,
                "updated_at": now.isoformat(),
                "lease_expires_at": (now + self.lease_duration).isoformat(),
            })
            .eq("id", str(job_id))
            .eq("status", "processing")
            .execute()
        )
        if not result.data:
            current = await self._require(job_id)
            raise InvalidStateTransitionError(
                current.status, current.status, "progress can only be updated while processing"
            )
        return Job.model_validate(result.data[0])

    async def transition(
        self,
        job_id: JobId,
        target: str,
        error_message: Optional[str] = None,
        lease_owner: Optional[str] = None,
    ) -> Job:
        """
        Move a job along an allowed edge of the state machine.

        The completed state is reachable only through link_video.

        Raises:
            InvalidStateTransitionError: On a disallowed edge or a lost race
            NotFoundError: If the job does not exist
        """
        current = await self._require(job_id)
        if target == "completed":
            raise InvalidStateTransitionError(
                current.status, target, "completion requires link_video"
            )
        ensure_transition(current.status, target)

        now = utcnow()
        changes = {"status": target, "updated_at": now.isoformat()}
        if target == "processing":
            changes["lease_owner"] = lease_owner
            changes["lease_expires_at"] = (now + self.lease_duration).isoformat()
        if target in TERMINAL_STATUSES:
            changes["completed_at"] = now.isoformat()
            changes["lease_owner"] = None
            changes["lease_expires_at"] = None
        if target == "failed":
            changes["error_message"] = error_message

        updated = await self._compare_and_set(job_id, current.status, target, changes)
        logger.info(
            f"Job transitioned {current.status} -> {target}",
            extra={"job_id": str(job_id), "error_message": error_message}
        )
        return updated

    async def mark_processing(self, job_id: JobId, lease_owner: str) -> Job:
        """pending -> processing, taking a lease for lease_owner."""
        return await self.transition(job_id, "processing", lease_owner=lease_owner)

    async def mark_failed(self, job_id: JobId, error_message: str) -> Job:
        """pending|processing -> failed with an error message."""
        return await self.transition(job_id, "failed", error_message=error_message)

    async def link_video(self, job_id: JobId, video_id: JobId) -> Job:
        """
        Complete a processing job by attaching its video.

        Sets video_id, status=completed, progress=100 and completed_at in one
        conditional update.

        Raises:
            InvalidStateTransitionError: If the job is not processing
            NotFoundError: If the job does not exist
        """
        now = utcnow().isoformat()
        changes = {
            "video_id": str(video_id),
            "status": "completed",
            "progress": 100,
            "completed_at": now,
            "updated_at": now,
            "lease_owner": None,
            "lease_expires_at": None,
        }
        updated = await self._compare_and_set(job_id, "processing", "completed", changes)
        logger.info("Job completed", extra={"job_id": str(job_id), "video_id": str(video_id)})
        return updated

    async def set_external_job_id(self, job_id: JobId, external_job_id: str) -> bool:
        """
        Store the provider-side id unless one is already set.

        Returns:
            True if the id was written
        """
        result = await (
            self.db.table(TABLE)
            .update({"external_job_id": external_job_id, "updated_at": utcnow().isoformat()})
            .eq("id", str(job_id))
            .is_("external_job_id", "null")
            .execute()
        )
        return bool(result.data)

    async def find_stuck_jobs(
        self,
        threshold: Optional[timedelta] = None,
        now: Optional[datetime] = None,
    ) -> List[Job]:
        """Processing jobs the recovery sweep would reclaim, without touching them."""
        now = now or utcnow()
        cutoff = now - (self.lease_duration if threshold is None else threshold)

        expired = await (
            self.db.table(TABLE)
            .select("*")
            .eq("status", "processing")
            .lt("lease_expires_at", now.isoformat())
            .execute()
        )
        stale = await (
            self.db.table(TABLE)
            .select("*")
            .eq("status", "processing")
            .is_("lease_expires_at", "null")
            .lt("updated_at", cutoff.isoformat())
            .execute()
        )
        return [Job.model_validate(row) for row in (expired.data or []) + (stale.data or [])]

    async def recover_stuck_jobs(
        self,
        threshold: Optional[timedelta] = None,
        now: Optional[datetime] = None,
    ) -> List[Job]:
        """
        Fail every processing job that no live runner holds.

        A job is reclaimed when its lease expired before now, or when it has
        no lease and was last updated before now - threshold. Both updates are
        bulk and conditional on status=processing.

        Returns:
            Jobs that were marked failed
        """
        now = now or utcnow()
        cutoff = now - (self.lease_duration if threshold is None else threshold)
        changes = {
            "status": "failed",
            "error_message": RESTART_MESSAGE,
            "completed_at": now.isoformat(),
            "updated_at": now.isoformat(),
            "lease_owner": None,
            "lease_expires_at": None,
        }

        expired = await (
            self.db.table(TABLE)
            .update(changes)
            .eq("status", "processing")
            .lt("lease_expires_at", now.isoformat())
            .execute()
        )
        stale = await (
            self.db.table(TABLE)
            .update(changes)
            .eq("status", "processing")
            .is_("lease_expires_at", "null")
            .lt("updated_at", cutoff.isoformat())
            .execute()
        )

        recovered = [Job.model_validate(row) for row in (expired.data or []) + (stale.data or [])]
        if recovered:
            logger.warning(
                f"Recovered {len(recovered)} stuck job(s)",
                extra={"job_ids": ",".join(str(job.id) for job in recovered)}
            )
        return recovered

    async def _require(self, job_id: JobId) -> Job:
        job = await self.get(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        return job

    async def _compare_and_set(self, job_id: JobId, expected: str, target: str, changes: dict) -> Job:
        result = await (
            self.db.table(TABLE)
            .update(changes)
            .eq("id", str(job_id))
            .eq("status", expected)
            .execute()
        )
        if not result.data:
            # Zero rows matched: the row is gone or another writer moved it first
            current = await self._require(job_id)
            raise InvalidStateTransitionError(current.status, target)
        return Job.model_validate(result.data[0])
