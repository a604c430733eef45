"""
FastAPI application factory.

Run with:
    uvicorn api_gateway.main:app --host 0.0.0.0 --port 8000
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.config import settings
from shared.database import DatabaseClient
from shared.errors import InvalidStateTransitionError, NotFoundError, ValidationError
from shared.logging import get_logger
from modules.generation_client import GenerationClient
from modules.job_store import JobStore
from modules.video_store import VideoStore
from api_gateway.orchestrator import JobOrchestrator
from api_gateway.recovery import recover_stuck_jobs
from api_gateway.routes import videos
from api_gateway.worker import JobRunner, build_worker_id

logger = get_logger(__name__)


def install_exception_handlers(app: FastAPI) -> None:
    """Map request validation and pipeline errors to JSON responses."""

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = [
            {
                "field": ".".join(str(part) for part in err["loc"] if part not in ("body", "query", "path")),
                "message": err["msg"],
            }
            for err in exc.errors()
        ]
        logger.info("Request validation failed", extra={"path": request.url.path, "error_count": len(details)})
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Validation failed", "code": "VALIDATION_ERROR", "details": details},
        )

    @app.exception_handler(ValidationError)
    async def pipeline_validation_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": str(exc), "code": "VALIDATION_ERROR", "details": []},
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": str(exc), "code": "NOT_FOUND"},
        )

    @app.exception_handler(InvalidStateTransitionError)
    async def invalid_transition_handler(request: Request, exc: InvalidStateTransitionError):
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"error": str(exc), "code": "INVALID_STATE_TRANSITION"},
        )


def create_app(
    database: Optional[DatabaseClient] = None,
    generation_client: Optional[GenerationClient] = None,
    run_recovery: bool = True,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        database: Database client (default: one built from settings)
        generation_client: Provider client (default: one built from settings)
        run_recovery: Run the stuck-job sweep on startup
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Build services, reconcile orphaned jobs, then serve."""
        db = database or DatabaseClient()
        job_store = JobStore(db)
        video_store = VideoStore(db)
        orchestrator = JobOrchestrator(
            job_store,
            video_store,
            generation_client or GenerationClient(),
            worker_id=build_worker_id(),
        )

        app.state.database = db
        app.state.job_store = job_store
        app.state.video_store = video_store
        app.state.job_runner = JobRunner(orchestrator)

        logger.info(
            "Starting API gateway",
            extra={"environment": settings.environment, "worker_id": orchestrator.worker_id}
        )
        if run_recovery:
            # Must finish before the first request is served
            await recover_stuck_jobs(job_store)

        yield

        logger.info(
            "Shutting down API gateway",
            extra={"active_runs": app.state.job_runner.active_count}
        )
        await app.state.job_runner.drain(timeout=settings.shutdown_drain_seconds)

    app = FastAPI(title="Video Generation API", version="1.0.0", lifespan=lifespan)

    install_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(videos.router, prefix="/api", tags=["videos"])

    @app.get("/health")
    async def health_check(request: Request):
        """Liveness plus database reachability; 503 when the database is down."""
        database_ok = await request.app.state.database.health_check()
        return JSONResponse(
            status_code=status.HTTP_200_OK if database_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "ok" if database_ok else "degraded",
                "database": "ok" if database_ok else "unavailable",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    return app


app = create_app()
