# note_poster/pipeline/retry.py
"""Retry logic for provider calls with exponential backoff."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from note_poster.providers.errors import GenerationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


def is_retryable(exception: BaseException) -> bool:
    """
    Returns True if the exception should be retried.

    Only classified GenerationErrors carrying ``retryable=True`` qualify;
    the flag is never re-derived here.
    """
    return isinstance(exception, GenerationError) and exception.retryable


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    retry_count: int,
    sleep: SleepFn = asyncio.sleep,
) -> T:
    """
    Run ``operation`` with up to ``retry_count`` automatic retries.

    Attempts = retry_count + 1. Between attempts the delay is
    ``2 ** attempt_index`` seconds (1, 2, 4, ...). Non-retryable errors
    propagate immediately; when attempts run out the last error propagates.

    Args:
        operation: Zero-arg coroutine factory (called once per attempt)
        retry_count: Number of retries after the first attempt
        sleep: Awaitable sleep, injectable for tests
    """
    retrying = AsyncRetrying(
        sleep=sleep,
        stop=stop_after_attempt(max(0, retry_count) + 1),
        wait=wait_exponential(multiplier=1, exp_base=2, min=0, max=3600),
        retry=retry_if_exception(is_retryable),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            result = await operation()
    return result
