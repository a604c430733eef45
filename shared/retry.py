"""
Retry logic with fixed or exponential backoff.

Decorator for automatic retry of coroutines on retryable errors.
"""

import asyncio
import functools
from typing import Awaitable, Callable, Literal, Tuple, Type, Any, TypeVar

from shared.errors import RetryableError
from shared.logging import get_logger

T = TypeVar("T")
logger = get_logger("retry")


def retry_with_backoff(
    max_attempts: int = 3,
    base_delay: float = 2,
    retryable_exceptions: Tuple[Type[Exception], ...] = (RetryableError,),
    backoff: Literal["exponential", "fixed"] = "exponential"
):
    """
    Decorator for retrying coroutines with backoff.

    Args:
        max_attempts: Maximum number of attempts, first try included (default: 3)
        base_delay: Delay in seconds before the first retry (default: 2)
        retryable_exceptions: Tuple of exception types to retry on (default: RetryableError)
        backoff: "exponential" doubles the delay after every attempt (2s, 4s, 8s),
            "fixed" waits base_delay between every pair of attempts

    Returns:
        Decorated coroutine function

    Example:
        @retry_with_backoff(max_attempts=6, base_delay=2, backoff="fixed")
        async def call_api():
            # Will retry on RetryableError
            response = await api_client.call(...)
            return response
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> T:
            last_exception = None

            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as e:
                    last_exception = e
                    if attempt < max_attempts - 1:
                        if backoff == "fixed":
                            delay = base_delay
                        else:
                            delay = base_delay * (2 ** attempt)
                        logger.warning(
                            f"Retry attempt {attempt + 1}/{max_attempts} for {func.__name__} "
                            f"after {delay}s delay",
                            extra={"error": str(e), "attempt": attempt + 1}
                        )
                        await asyncio.sleep(delay)
                    else:
                        logger.error(
                            f"All {max_attempts} retry attempts failed for {func.__name__}",
                            extra={"error": str(e)}
                        )
                except Exception as e:
                    # Don't retry on non-retryable exceptions
                    logger.error(
                        f"Non-retryable error in {func.__name__}: {str(e)}",
                        extra={"error": str(e)}
                    )
                    raise

            # All retries failed, raise last exception
            raise last_exception

        return async_wrapper

    return decorator
