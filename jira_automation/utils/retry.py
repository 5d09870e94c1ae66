"""Retry utilities for handling transient failures.

Provides a decorator for retrying async operations with exponential
backoff. Used for idempotent tracker and code-host reads; writes that
could duplicate side effects (comments, merge requests) are not wrapped.

Backoff Formula:
    delay = backoff_factor ** attempt_number
    For backoff_factor=2.0: 2s, 4s, 8s, 16s, ...
"""

import asyncio
import functools
from collections.abc import Callable
from typing import Any

import structlog

log = structlog.get_logger(__name__)


def async_retry(
    max_attempts: int = 3,
    backoff_factor: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator for async functions with exponential backoff retry logic.

    Args:
        max_attempts: Maximum number of attempts before giving up.
        backoff_factor: Base for exponential backoff calculation.
        exceptions: Exception types that trigger a retry. Others propagate
            immediately.

    Raises:
        The last caught exception if all retry attempts are exhausted.

    Example:
        >>> @async_retry(max_attempts=5, exceptions=(httpx.TransportError,))
        ... async def fetch():
        ...     return await client.get("/issue")
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_attempts:
                        log.error(
                            "retry_exhausted",
                            function=func.__name__,
                            attempts=attempt,
                            error=str(e),
                        )
                        raise

                    delay = backoff_factor**attempt
                    log.warning(
                        "retry_attempt",
                        function=func.__name__,
                        attempt=attempt,
                        max_attempts=max_attempts,
                        delay=delay,
                        error=str(e),
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
