"""
Retry with exponential backoff for async calls to flaky upstreams.

Used around the hosted LLM requests, which are the slowest and least
reliable dependency of the service.
"""

import asyncio
import logging
from functools import wraps
from typing import Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_with_backoff(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    should_retry: Optional[Callable[[BaseException], bool]] = None,
):
    """
    Retry decorator with exponential backoff.

    Args:
        max_attempts: Total number of attempts, including the first one
        initial_delay: Delay before the second attempt (seconds)
        backoff_factor: Multiplier applied to the delay after each retry
        exceptions: Exception types that are candidates for a retry
        should_retry: Optional predicate; returning False re-raises immediately

    Delays:
        Attempt 1: 0s (immediate)
        Attempt 2: initial_delay
        Attempt 3: initial_delay * backoff_factor
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            delay = initial_delay

            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if should_retry is not None and not should_retry(e):
                        raise
                    if attempt == max_attempts:
                        logger.error(f"{func.__name__} failed after {max_attempts} attempts: {e}")
                        raise

                    logger.warning(
                        f"{func.__name__} attempt {attempt}/{max_attempts} failed: {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )
                    await asyncio.sleep(delay)
                    delay *= backoff_factor

        return wrapper

    return decorator
