"""
Retry with exponential backoff for chain reads and writes.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from erps.errors import GameError, TransientChainError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient(error: BaseException) -> bool:
    """Default policy: only transient chain errors are retried"""
    return isinstance(error, TransientChainError)


async def retry(
    fn: Callable[[], Awaitable[T]],
    retries: int = 3,
    backoff_seconds: float = 1.0,
    should_retry: Callable[[BaseException], bool] = is_transient,
    on_retry: Optional[Callable[[BaseException, int], None]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Runs fn up to `retries` times, waiting backoff * 2^(attempt-1) between attempts.

    Errors rejected by should_retry, and the error of the last attempt, are re-raised.
    """
    if retries < 1:
        raise ValueError("retries must be at least 1")
    attempt = 0
    while True:
        try:
            return await fn()
        except GameError as e:
            attempt += 1
            if not should_retry(e) or attempt >= retries:
                raise
            if on_retry is not None:
                on_retry(e, attempt)
            delay = backoff_seconds * (2 ** (attempt - 1))
            logger.warning(f"🔁 Retry {attempt}/{retries - 1} in {delay:.2f}s: {e}")
            await sleep(delay)
