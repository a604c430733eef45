"""
Job orchestration logic.

Drives one job from pending to a terminal state: opens the generation stream,
feeds it through the stream decoder and writes progress, the video record and
the final status to the stores.
"""

from typing import Iterable
from uuid import UUID

import httpx

from shared.errors import (
    GenerationError,
    InvalidProgressError,
    InvalidStateTransitionError,
    NotFoundError,
)
from shared.logging import get_logger, job_context
from shared.models.job import Job
from modules.generation_client import GenerationClient, get_model_for_orientation
from modules.job_store import JobStore
from modules.stream_parser import (
    CompletionEvent,
    FinishEvent,
    ProgressEvent,
    StreamDecoder,
    StreamEvent,
    StreamOpenedEvent,
)
from modules.video_store import VideoStore

logger = get_logger(__name__)

NO_ARTIFACT_MESSAGE = "Video generation completed but no video URL was received"


class JobOrchestrator:
    """Runs the generation lifecycle of individual jobs."""

    def __init__(
        self,
        job_store: JobStore,
        video_store: VideoStore,
        generation_client: GenerationClient,
        worker_id: str = "local",
    ):
        self.job_store = job_store
        self.video_store = video_store
        self.generation_client = generation_client
        self.worker_id = worker_id

    async def run(self, job_id: UUID) -> None:
        """
        Execute one job to completion.

        Never raises: every failure ends up in the job's failed state and the
        log. The job id is bound into the logging context for the whole run.

        Args:
            job_id: Job ID
        """
        with job_context(job_id):
            try:
                await self._execute(job_id)
            except Exception as e:
                logger.error("Job run failed", exc_info=e)
                await self.handle_job_error(job_id, e)

    async def _execute(self, job_id: UUID) -> None:
        job = await self.job_store.get(job_id)
        if job is None:
            logger.info("Job not found, nothing to run")
            return

        try:
            job = await self.job_store.mark_processing(job_id, self.worker_id)
        except InvalidStateTransitionError as e:
            # Another runner or the sweep already moved the job; it is theirs
            logger.warning("Job could not be started", extra={"error": str(e)})
            return

        model = get_model_for_orientation(job.orientation)
        logger.info(
            "Starting generation",
            extra={"model": model, "orientation": job.orientation, "prompt_length": len(job.prompt)}
        )

        async with self.generation_client.open_stream(job.prompt, model) as response:
            await self._consume(job, model, response)

        final = await self.job_store.get(job_id)
        if final is None:
            logger.info("Job deleted while running")
            return
        if final.status != "completed":
            raise GenerationError(NO_ARTIFACT_MESSAGE)

        logger.info("Job finished", extra={"video_id": str(final.video_id)})

    async def _consume(self, job: Job, model: str, response: httpx.Response) -> None:
        """Read the response body until the stream ends or a finish event arrives."""
        decoder = StreamDecoder()
        try:
            async for chunk in response.aiter_bytes():
                if await self._dispatch(job, model, decoder.feed(chunk)):
                    return
        except (httpx.HTTPError, httpx.StreamError) as e:
            raise GenerationError(f"Stream reading failed: {str(e)}") from e

        await self._dispatch(job, model, decoder.close())

    async def _dispatch(self, job: Job, model: str, events: Iterable[StreamEvent]) -> bool:
        """
        Apply decoded events to the stores.

        Returns:
            True once a FinishEvent was seen and reading should stop
        """
        for event in events:
            if isinstance(event, StreamOpenedEvent):
                if await self.job_store.set_external_job_id(job.id, event.external_id):
                    logger.info("Provider job id recorded", extra={"external_job_id": event.external_id})

            elif isinstance(event, ProgressEvent):
                await self._record_progress(job, event.progress)

            elif isinstance(event, CompletionEvent):
                await self._complete(job, model, event)

            elif isinstance(event, FinishEvent):
                logger.info("Stream finished", extra={"finish_reason": event.reason})
                return True

        return False

    async def _record_progress(self, job: Job, progress: int) -> None:
        try:
            await self.job_store.update_progress(job.id, progress)
        except InvalidProgressError as e:
            logger.warning("Skipping progress update", extra={"error": str(e), "progress": progress})
        except InvalidStateTransitionError as e:
            # Completion already landed; late progress text is irrelevant
            logger.info("Ignoring progress after completion", extra={"progress": progress, "error": str(e)})

    async def _complete(self, job: Job, model: str, event: CompletionEvent) -> None:
        """Create the video and link it, at most once per job."""
        current = await self.job_store.get(job.id)
        if current is None:
            raise NotFoundError(f"Job {job.id} not found")
        if current.status == "completed":
            logger.info(
                "Duplicate completion ignored",
                extra={"video_url": event.url, "trigger": event.trigger}
            )
            return

        video = await self.video_store.create(
            user_id=job.user_id,
            prompt=job.prompt,
            orientation=job.orientation,
            model_used=model,
            video_url=event.url,
            status="completed",
        )
        await self.job_store.link_video(job.id, video.id)
        logger.info(
            "Video linked to job",
            extra={"video_id": str(video.id), "video_url": event.url, "trigger": event.trigger}
        )

    async def handle_job_error(self, job_id: UUID, error: Exception) -> None:
        """
        Mark job as failed with the error's message.

        A job that is already terminal, or gone, is left as it is.

        Args:
            job_id: Job ID
            error: Exception that occurred
        """
        error_message = str(error) or error.__class__.__name__
        try:
            await self.job_store.mark_failed(job_id, error_message)
        except InvalidStateTransitionError as e:
            logger.warning("Job already terminal, failure not recorded", extra={"error": str(e)})
        except NotFoundError:
            logger.info("Job deleted before failure could be recorded")
        except Exception as e:
            logger.error("Failed to record job failure", exc_info=e, extra={"error_message": error_message})

