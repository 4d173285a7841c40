"""Retry utilities for async HTTP operations.

Read-only trip API calls are retried with tenacity; writes and queue flushes
are not, since the sync flusher re-attempts them on its own triggers.
"""

from __future__ import annotations

import asyncio
import logging

from aiohttp import ClientConnectorError, ServerDisconnectedError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

TRANSIENT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    ClientConnectorError,
    ServerDisconnectedError,
    asyncio.TimeoutError,
)


def retry_async(
    max_retries: int = 3,
    retry_delay: float = 1.0,
    backoff_factor: float = 2.0,
    retry_exceptions: tuple[type[BaseException], ...] = TRANSIENT_EXCEPTIONS,
):
    """Return a tenacity retry decorator configured with the given parameters.

    Args:
        max_retries: Retry attempts in addition to the first attempt.
        retry_delay: Multiplier for the exponential wait between attempts.
        backoff_factor: Exponential base for the wait.
        retry_exceptions: Exception types that trigger another attempt.

    Example:
        @retry_async(max_retries=2, retry_delay=0.5)
        async def list_trips():
            ...
    """
    return retry(
        # stop_after_attempt counts the first attempt too
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=retry_delay, exp_base=backoff_factor),
        retry=retry_if_exception_type(retry_exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
