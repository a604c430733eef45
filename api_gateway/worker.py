"""
In-process job runner.

Launches orchestrator runs as background asyncio tasks, fire-and-forget from
the caller's point of view, behind a semaphore that caps how many run at once.
Jobs past the ceiling stay pending until a slot frees up.
"""

import asyncio
import os
import socket
from typing import Optional, Set
from uuid import UUID, uuid4

from shared.config import settings
from shared.logging import get_logger
from api_gateway.orchestrator import JobOrchestrator

logger = get_logger(__name__)


def build_worker_id() -> str:
    """Lease owner id for this process: host, pid and a random suffix."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid4().hex[:8]}"


class JobRunner:
    """Fire-and-forget launcher with a concurrency ceiling."""

    def __init__(self, orchestrator: JobOrchestrator, max_concurrent_jobs: Optional[int] = None):
        self.orchestrator = orchestrator
        self.max_concurrent_jobs = max_concurrent_jobs or settings.max_concurrent_jobs
        self.semaphore = asyncio.Semaphore(self.max_concurrent_jobs)
        # Strong references so running tasks are not garbage collected
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active_count(self) -> int:
        """Submitted runs that have not finished yet (running or waiting for a slot)."""
        return len(self._tasks)

    def submit(self, job_id: UUID) -> asyncio.Task:
        """
        Schedule a job run and return immediately.

        Must be called from inside a running event loop.

        Args:
            job_id: Job ID

        Returns:
            The background task
        """
        task = asyncio.create_task(self.process_job_with_limit(job_id), name=f"job-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info(
            "Job submitted",
            extra={"job_id": str(job_id), "active_runs": len(self._tasks)}
        )
        return task

    async def process_job_with_limit(self, job_id: UUID) -> None:
        """
        Process job with concurrency limit.

        Args:
            job_id: Job ID
        """
        logger.info(
            "Acquiring semaphore for job",
            extra={"job_id": str(job_id), "max_concurrent_jobs": self.max_concurrent_jobs}
        )
        async with self.semaphore:
            logger.info("Processing job (semaphore acquired)", extra={"job_id": str(job_id)})
            await self.orchestrator.run(job_id)
            logger.info("Job run ended (semaphore released)", extra={"job_id": str(job_id)})

    async def drain(self, timeout: Optional[float] = None) -> int:
        """
        Wait for submitted runs to finish, for at most timeout seconds.

        Runs still going after the timeout are left alone; the next startup
        recovery sweep fails them once their lease expires.

        Returns:
            Number of runs still unfinished
        """
        if not self._tasks:
            return 0
        _, pending = await asyncio.wait(list(self._tasks), timeout=timeout)
        if pending:
            logger.warning(
                "Runs still active after drain timeout",
                extra={"unfinished_runs": len(pending), "timeout_seconds": timeout}
            )
        return len(pending)
