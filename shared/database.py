"""
Database client.

Supabase PostgreSQL client with retry and query utilities.
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional, Any, Callable
from supabase import create_client, Client
from shared.config import settings
from shared.errors import RetryableError, ConfigError
from shared.logging import get_logger

logger = get_logger("database")


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class DatabaseClient:
    """Supabase database client wrapper with retry logic."""

    def __init__(self, client: Optional[Client] = None, retry_base_delay: float = 2):
        """
        Initialize database client.

        Args:
            client: Pre-built Supabase client. When omitted, one is created from
                settings on first use.
            retry_base_delay: Delay before the first retry of a failed call
        """
        self._client = client
        self.retry_base_delay = retry_base_delay

    @property
    def client(self) -> Client:
        """Underlying Supabase client, created lazily."""
        if self._client is None:
            try:
                self._client = create_client(
                    settings.supabase_url,
                    settings.supabase_service_key
                )
            except Exception as e:
                raise ConfigError(f"Failed to initialize database client: {str(e)}") from e
        return self._client

    @client.setter
    def client(self, value: Client) -> None:
        self._client = value

    async def _execute_sync(self, func: Callable[[], Any], max_attempts: int = 3) -> Any:
        """
        Execute a synchronous Supabase operation in an async context.

        Args:
            func: Synchronous function to execute
            max_attempts: Maximum number of retry attempts

        Returns:
            Function result

        Raises:
            RetryableError: If operation fails after all retries
        """
        loop = asyncio.get_running_loop()
        for attempt in range(max_attempts):
            try:
                return await loop.run_in_executor(None, func)
            except Exception as e:
                if attempt < max_attempts - 1:
                    # Exponential backoff: 2s, 4s, 8s
                    delay = self.retry_base_delay * (2 ** attempt)
                    await asyncio.sleep(delay)
                else:
                    raise RetryableError(
                        f"Database operation failed after {max_attempts} attempts: {str(e)}"
                    ) from e

    def table(self, table_name: str) -> "AsyncTableQueryBuilder":
        """
        Get a table query builder with async execution support.

        Args:
            table_name: Name of the table

        Returns:
            AsyncTableQueryBuilder wrapper
        """
        return AsyncTableQueryBuilder(self, table_name)

    async def health_check(self) -> bool:
        """
        Check database connection health.

        Returns:
            True if the jobs table answered a one-row select, False otherwise
        """
        try:
            await self._execute_sync(
                lambda: self.client.table("video_jobs").select("id").limit(1).execute(),
                max_attempts=1
            )
            return True
        except (RetryableError, ConfigError) as e:
            logger.warning("Database health check failed", extra={"error": str(e)})
            return False


class AsyncTableQueryBuilder:
    """Async wrapper for Supabase table query builder."""

    def __init__(self, db_client: DatabaseClient, table_name: str):
        """Initialize async table query builder."""
        self.db_client = db_client
        self.table_name = table_name
        self._query_builder = db_client.client.table(table_name)

    def select(self, *args, **kwargs):
        """Chain select operation."""
        self._query_builder = self._query_builder.select(*args, **kwargs)
        return self

    def insert(self, *args, **kwargs):
        """Chain insert operation."""
        self._query_builder = self._query_builder.insert(*args, **kwargs)
        return self

    def update(self, *args, **kwargs):
        """Chain update operation."""
        self._query_builder = self._query_builder.update(*args, **kwargs)
        return self

    def eq(self, *args, **kwargs):
        """Chain eq filter."""
        self._query_builder = self._query_builder.eq(*args, **kwargs)
        return self

    def in_(self, *args, **kwargs):
        """Chain in filter (column value is one of a list)."""
        self._query_builder = self._query_builder.in_(*args, **kwargs)
        return self

    def is_(self, *args, **kwargs):
        """Chain is filter (used for `is null` / `is not null` checks)."""
        self._query_builder = self._query_builder.is_(*args, **kwargs)
        return self

    def lt(self, *args, **kwargs):
        """Chain lt (less than) filter."""
        self._query_builder = self._query_builder.lt(*args, **kwargs)
        return self

    def limit(self, *args, **kwargs):
        """Chain limit operation."""
        self._query_builder = self._query_builder.limit(*args, **kwargs)
        return self

    def order(self, *args, **kwargs):
        """Chain order operation."""
        self._query_builder = self._query_builder.order(*args, **kwargs)
        return self

    def range(self, *args, **kwargs):
        """Chain range operation (for pagination: range(offset, offset + limit - 1))."""
        self._query_builder = self._query_builder.range(*args, **kwargs)
        return self

    async def execute(self, max_attempts: int = 3) -> Any:
        """
        Execute the query asynchronously.

        Args:
            max_attempts: Maximum number of retry attempts

        Returns:
            Query result
        """
        query_builder = self._query_builder
        return await self.db_client._execute_sync(
            lambda: query_builder.execute(),
            max_attempts
        )
