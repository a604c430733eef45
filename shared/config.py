"""
Configuration management.

Centralized environment variable management and validation.
"""

from typing import Literal
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from shared.errors import ConfigError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # Allow case-insensitive env var matching
        extra="ignore"
    )

    # Supabase configuration (job and video persistence)
    supabase_url: str
    supabase_service_key: str

    # Generation provider (OpenAI-compatible streaming chat endpoint)
    generation_api_url: str
    generation_api_token: str

    # JWT configuration (identity provider shares this secret)
    jwt_secret_key: str

    # Frontend configuration
    frontend_url: str = "http://localhost:5173"  # Frontend domain for CORS

    # Environment
    environment: Literal["development", "staging", "production"] = "development"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Provider model per orientation
    portrait_model: str = "sora_video2-hd-portrait-15s"
    landscape_model: str = "sora_video2-hd-landscape-15s"

    # GENERATION_MAX_RETRIES: extra attempts after the first one on HTTP 500/503
    generation_max_retries: int = 5
    # GENERATION_RETRY_DELAY_SECONDS: fixed wait between attempts
    generation_retry_delay_seconds: float = 2.0
    # GENERATION_TIMEOUT_SECONDS: read timeout for a single stream read
    generation_timeout_seconds: float = 900.0

    # STUCK_JOB_THRESHOLD_MINUTES: a processing job without a heartbeat for this
    # long is considered orphaned by the startup sweep. Also the lease length.
    stuck_job_threshold_minutes: int = 5

    # MAX_CONCURRENT_JOBS: orchestrator runs allowed at once per process.
    # Jobs past the ceiling wait in "pending" until a slot frees up.
    max_concurrent_jobs: int = 10
    # SHUTDOWN_DRAIN_SECONDS: how long shutdown waits for in-flight runs
    shutdown_drain_seconds: float = 30.0

    @field_validator("supabase_url")
    @classmethod
    def validate_supabase_url(cls, v: str) -> str:
        """Validate Supabase URL format."""
        if not v:
            raise ConfigError("SUPABASE_URL is required")
        if not v.startswith(("http://", "https://")):
            raise ConfigError("SUPABASE_URL must be a valid HTTP/HTTPS URL")
        return v

    @field_validator("supabase_service_key")
    @classmethod
    def validate_supabase_service_key(cls, v: str) -> str:
        """Validate Supabase service key presence."""
        if not v:
            raise ConfigError("SUPABASE_SERVICE_KEY is required")
        return v

    @field_validator("generation_api_url")
    @classmethod
    def validate_generation_api_url(cls, v: str) -> str:
        """Validate generation provider URL format."""
        if not v:
            raise ConfigError("GENERATION_API_URL is required")
        if not v.startswith(("http://", "https://")):
            raise ConfigError("GENERATION_API_URL must be a valid HTTP/HTTPS URL")
        return v

    @field_validator("generation_api_token")
    @classmethod
    def validate_generation_api_token(cls, v: str) -> str:
        """Validate generation provider token presence."""
        if not v:
            raise ConfigError("GENERATION_API_TOKEN is required")
        return v

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret_key(cls, v: str) -> str:
        """Validate JWT secret key format."""
        if not v:
            raise ConfigError("JWT_SECRET_KEY is required")
        if len(v) < 32:
            raise ConfigError("JWT_SECRET_KEY must be at least 32 characters")
        return v

    @field_validator("frontend_url")
    @classmethod
    def validate_frontend_url(cls, v: str) -> str:
        """Validate frontend URL format."""
        if not v.startswith(("http://", "https://")):
            raise ConfigError("FRONTEND_URL must be a valid HTTP/HTTPS URL")
        return v

    @field_validator("generation_max_retries", "stuck_job_threshold_minutes")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        """Retry counts and thresholds cannot be negative."""
        if v < 0:
            raise ConfigError("GENERATION_MAX_RETRIES and STUCK_JOB_THRESHOLD_MINUTES must not be negative")
        return v

    @field_validator("max_concurrent_jobs")
    @classmethod
    def validate_max_concurrent_jobs(cls, v: int) -> int:
        """At least one job must be able to run."""
        if v < 1:
            raise ConfigError("MAX_CONCURRENT_JOBS must be at least 1")
        return v

    @property
    def generation_max_attempts(self) -> int:
        """Total attempts for one provider request (first try plus retries)."""
        return self.generation_max_retries + 1


# Singleton instance
try:
    settings = Settings()
except Exception as e:
    # Re-raise as ConfigError for consistency
    if isinstance(e, ConfigError):
        raise
    raise ConfigError(f"Failed to load configuration: {str(e)}") from e
