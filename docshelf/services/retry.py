"""Retry logic for transient backing store faults."""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, TypeVar, Union

from docshelf.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_with_backoff(
    func: Callable[[], Union[T, Awaitable[T]]],
    max_retries: Optional[int] = None,
    delay: Optional[float] = None,
    backoff_multiplier: Optional[float] = None,
    exceptions: tuple = (Exception,),
) -> T:
    """
    Retry a callable with exponential backoff.

    Args:
        func: Zero-argument callable, sync or returning an awaitable.
        max_retries: Maximum number of retry attempts.
        delay: Initial delay in seconds.
        backoff_multiplier: Multiplier for exponential backoff.
        exceptions: Tuple of exceptions to catch and retry.

    Returns:
        Result of the function call.

    Raises:
        Last exception if all retries fail.
    """
    if max_retries is None:
        max_retries = settings.max_retries
    if delay is None:
        delay = settings.retry_delay_seconds
    if backoff_multiplier is None:
        backoff_multiplier = settings.retry_backoff_multiplier

    last_exception = None

    for attempt in range(max_retries + 1):
        try:
            result = func()
            if inspect.isawaitable(result):
                result = await result
            return result
        except exceptions as e:
            last_exception = e
            if attempt < max_retries:
                wait_time = delay * (backoff_multiplier ** attempt)
                logger.warning(
                    f"Attempt {attempt + 1}/{max_retries + 1} failed: {str(e)}. "
                    f"Retrying in {wait_time:.2f}s..."
                )
                await asyncio.sleep(wait_time)
            else:
                logger.error(
                    f"All {max_retries + 1} attempts failed. Last error: {str(e)}")

    raise last_exception
