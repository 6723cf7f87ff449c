"""
Bounded exponential-backoff retry for async operations.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from ..domain.errors import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay to wait after failed attempt N (1-based): base × 2^(N-1), uncapped."""
    return base_delay * (2 ** (attempt - 1))


async def with_retry(
    op: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    label: str = "operation",
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """
    Runs op up to max_attempts times. Exceptions outside retry_on propagate
    immediately. When every attempt fails, raises RetryExhaustedError
    carrying the attempt count, chained to the last error.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    sleep = sleep or asyncio.sleep

    for attempt in range(1, max_attempts + 1):
        try:
            return await op()
        except retry_on as e:
            if attempt == max_attempts:
                raise RetryExhaustedError(attempt, e) from e
            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                f"[Retry] {label} failed (attempt {attempt}/{max_attempts}): {e} "
                f"— retrying in {delay:.1f}s"
            )
            await sleep(delay)

    raise AssertionError("unreachable")
