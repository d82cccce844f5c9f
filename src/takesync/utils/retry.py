"""Retry decorator with exponential backoff."""

import asyncio
from collections.abc import Callable, Coroutine
from functools import wraps
from typing import Any, ParamSpec, TypeVar

import structlog

from takesync.utils.exceptions import APIError, RateLimitError

P = ParamSpec("P")
T = TypeVar("T")

logger = structlog.get_logger(__name__)


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 2.0,
    max_delay: float = 60.0,
) -> Callable[[Callable[P, Coroutine[Any, Any, T]]], Callable[P, Coroutine[Any, Any, T]]]:
    """Decorator that retries an async function on retryable API errors.

    Rate limiting (429), server errors (5xx) and network failures are retried
    with exponential backoff. Any other APIError is raised immediately. When
    the retries are used up the last error is raised unchanged, so callers can
    still tell it was transient.

    Args:
        max_retries: Maximum number of retry attempts after the first call.
        base_delay: Base delay in seconds (doubles each retry).
        max_delay: Maximum delay between retries.

    Returns:
        Decorated function.
    """

    def decorator(
        func: Callable[P, Coroutine[Any, Any, T]]
    ) -> Callable[P, Coroutine[Any, Any, T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except APIError as e:
                    if not e.retryable:
                        raise

                    if attempt >= max_retries:
                        logger.error(
                            "Max retries exceeded",
                            function=func.__name__,
                            attempts=attempt + 1,
                            status_code=e.status_code,
                            error=str(e),
                        )
                        raise

                    delay = min(base_delay * (2**attempt), max_delay)
                    if isinstance(e, RateLimitError) and e.retry_after:
                        delay = min(max(delay, e.retry_after), max_delay)

                    attempt += 1
                    logger.warning(
                        "Retrying after error",
                        function=func.__name__,
                        attempt=attempt,
                        max_retries=max_retries,
                        delay=delay,
                        status_code=e.status_code,
                        error=str(e),
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
