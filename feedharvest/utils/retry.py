"""
Retry utility with exponential backoff for feedharvest.

This module provides retry logic for transient failures such as blob store
uploads and record store writes.
"""

import asyncio
from typing import Awaitable, Callable, TypeVar, Optional
from dataclasses import dataclass
from feedharvest.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0

    def __post_init__(self):
        """Validate configuration."""
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if self.base_delay <= 0:
            raise ValueError("base_delay must be positive")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.exponential_base <= 1:
            raise ValueError("exponential_base must be > 1")

    def delay_for(self, attempt: int) -> float:
        """Backoff delay before retry number ``attempt + 1``."""
        return min(self.base_delay * (self.exponential_base ** attempt), self.max_delay)


def retry_async_with_backoff(
    func: Callable[..., Awaitable[T]],
    config: Optional[RetryConfig] = None,
    retry_on: tuple = (Exception,),
    on_retry: Optional[Callable[[int, Exception], None]] = None
) -> Callable[..., Awaitable[T]]:
    """
    Wrap an async function with exponential-backoff retries.

    Delays are awaited, so only the calling task waits.

    Args:
        func: Async function to retry
        config: Retry configuration
        retry_on: Tuple of exception types to retry on
        on_retry: Optional callback called on each retry (attempt, exception)

    Returns:
        Async wrapper function

    Example:
        >>> archive = retry_async_with_backoff(pipeline.archive, RetryConfig(max_retries=2))
        >>> # cid = await archive(record, markup, 7)
    """
    if config is None:
        config = RetryConfig()

    async def wrapper(*args, **kwargs):
        for attempt in range(config.max_retries + 1):
            try:
                return await func(*args, **kwargs)
            except retry_on as e:
                if attempt == config.max_retries:
                    logger.error(f"All {config.max_retries} retries exhausted: {e}")
                    raise

                delay = config.delay_for(attempt)
                logger.warning(
                    f"Retry {attempt + 1}/{config.max_retries} "
                    f"after {delay:.2f}s: {e}"
                )

                if on_retry:
                    on_retry(attempt + 1, e)

                await asyncio.sleep(delay)

        raise RuntimeError("Retry logic error")

    return wrapper
