"""
Bounded retry with exponential backoff for upstream failures.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from telecare.core.config import settings
from telecare.core.errors import UpstreamFailure
from telecare.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def calculate_backoff(attempt: int, base_delay: float) -> float:
    """Delay in seconds before retry number ``attempt`` (0-based)."""
    return base_delay * (2 ** attempt)


def should_retry(attempt: int, max_attempts: int) -> bool:
    """Check if another attempt is allowed after ``attempt`` failures."""
    return attempt < max_attempts


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: Optional[int] = None,
    base_delay: Optional[float] = None,
) -> T:
    """
    Await ``operation()`` and retry it while it raises UpstreamFailure.

    Every other error propagates on the first occurrence. After
    ``max_attempts`` failed attempts the last UpstreamFailure is re-raised.
    """
    if max_attempts is None:
        max_attempts = settings.upstream_retry_attempts
    if base_delay is None:
        base_delay = settings.upstream_retry_base_delay_seconds

    attempt = 0
    while True:
        try:
            return await operation()
        except UpstreamFailure as e:
            attempt += 1
            if not should_retry(attempt, max_attempts):
                logger.error("Upstream failure, giving up", attempts=attempt, error=e.message)
                raise
            delay = calculate_backoff(attempt - 1, base_delay)
            logger.warning("Upstream failure, retrying", attempt=attempt, delay=delay, error=e.message)
            await asyncio.sleep(delay)
