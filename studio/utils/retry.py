"""
Backend Retry Utility with Exponential Backoff

Generation backends answer 429 / "rate limit" when their upstream model
quota is exhausted. call_with_retry() retries those responses with an
exponential delay and re-raises everything else immediately.
"""

import asyncio
from typing import Awaitable, Callable, TypeVar

import httpx

from studio.utils.logger import setup_logger

logger = setup_logger(__name__)

T = TypeVar('T')

_RATE_LIMIT_MARKERS = ("429", "rate limit", "quota exceeded", "resource_exhausted")


def is_rate_limited(error: Exception) -> bool:
    """True when an exception represents a rate-limit / quota response."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code == 429
    text = str(error).lower()
    return any(marker in text for marker in _RATE_LIMIT_MARKERS)


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 2.0,
    max_delay: float = 30.0,
    operation_name: str = "backend call"
) -> T:
    """
    Call async function with exponential backoff retry for 429 errors.

    Args:
        func: Zero-argument callable returning an awaitable
        max_retries: Maximum number of attempts
        base_delay: Base delay in seconds
        max_delay: Maximum delay in seconds
        operation_name: Description of operation for logging

    Returns:
        Result from the first successful call

    Raises:
        Exception: The last error when retries are exhausted or the
            error is not a rate limit
    """
    attempts = max(1, max_retries)

    for attempt in range(attempts):
        try:
            result = await func()
            if attempt > 0:
                logger.info(f"{operation_name} succeeded after {attempt} retries")
            return result

        except Exception as e:
            if not is_rate_limited(e):
                raise

            if attempt == attempts - 1:
                logger.error(f"{operation_name} failed after {attempts} attempts due to rate limiting")
                raise

            delay = min(base_delay * (2 ** attempt), max_delay)
            logger.warning(
                f"{operation_name} hit rate limit (attempt {attempt + 1}/{attempts}). "
                f"Retrying in {delay:.1f}s..."
            )
            await asyncio.sleep(delay)

    raise RuntimeError(f"{operation_name} failed after {attempts} attempts")
