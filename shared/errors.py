"""
Error taxonomy.

Every error raised by the job pipeline derives from PipelineError so callers
can absorb pipeline failures without catching unrelated exceptions.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for all job pipeline errors."""


class ConfigError(PipelineError):
    """Invalid or missing configuration."""


class ValidationError(PipelineError):
    """Input rejected before any state was changed."""


class InvalidProgressError(ValidationError):
    """Progress value outside the 0-100 range."""

    def __init__(self, progress: int):
        self.progress = progress
        super().__init__(f"Progress must be between 0 and 100, got {progress}")


class RetryableError(PipelineError):
    """Transient failure that may succeed if the operation is repeated."""


class GenerationError(PipelineError):
    """Non-retryable failure reported by, or while talking to, the generation provider."""


class NotFoundError(PipelineError):
    """Requested record does not exist."""


class InvalidStateTransitionError(PipelineError):
    """Requested job status change is not an allowed edge of the state machine."""

    def __init__(self, current: str, requested: str, reason: Optional[str] = None):
        self.current = current
        self.requested = requested
        message = f"Invalid state transition from {current} to {requested}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
