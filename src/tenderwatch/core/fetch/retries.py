"""
Retry utilities with tenacity.

Bounded retries with a linearly growing delay for page loads against
the listing portal.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_DELAY = 3.0  # seconds, multiplied by the attempt number


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        delay: float = DEFAULT_DELAY,
        retry_exceptions: tuple[type[BaseException], ...] | None = None,
    ):
        """Initialize retry configuration.

        Args:
            max_attempts: Maximum number of attempts (including the first)
            delay: Wait after attempt N is ``delay * N`` seconds
            retry_exceptions: Exception types to retry on
        """
        self.max_attempts = max_attempts
        self.delay = delay
        self.retry_exceptions = retry_exceptions or (Exception,)

    def retrying(self) -> AsyncRetrying:
        """Build the tenacity controller for this configuration."""
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=self.delay, increment=self.delay),
            retry=retry_if_exception_type(self.retry_exceptions),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )


async def retry_async(
    coro_func: Callable[..., Awaitable[T]],
    *args: Any,
    config: RetryConfig | None = None,
    **kwargs: Any,
) -> T:
    """Execute an async function with retry logic.

    Args:
        coro_func: Async function to call
        *args: Positional arguments
        config: Retry configuration
        **kwargs: Keyword arguments

    Returns:
        Function result

    Raises:
        The last exception once all attempts fail
    """
    if config is None:
        config = RetryConfig()

    return await config.retrying()(coro_func, *args, **kwargs)

