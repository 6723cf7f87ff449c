"""
Per-source token bucket.

Every strategy step takes one token from its source's bucket before it
touches the registry. Buckets start full (a burst of one minute's budget)
and refill continuously; a caller that finds the bucket empty sleeps until
the next token is due.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

# Requests per minute, tuned to what each registry tolerates before blocking
DEFAULT_RATE_LIMITS: Dict[str, float] = {
    "florida": 30,
    "new_york": 20,
    "colorado": 20,
    "california": 15,
    "delaware": 10,
    "opencorporates": 10,
}
DEFAULT_REQUESTS_PER_MINUTE = 10.0


@dataclass
class _Bucket:
    capacity: float
    per_second: float
    tokens: float
    updated_at: float
    lock: Optional[asyncio.Lock] = None


class RateLimiter:
    def __init__(
        self,
        limits: Optional[Dict[str, float]] = None,
        default_rpm: float = DEFAULT_REQUESTS_PER_MINUTE,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self._limits = dict(DEFAULT_RATE_LIMITS if limits is None else limits)
        self._default_rpm = default_rpm
        self._clock = clock
        self._sleep = sleep or asyncio.sleep
        self._buckets: Dict[str, _Bucket] = {}

    def requests_per_minute(self, source: str) -> float:
        return self._limits.get(source, self._default_rpm)

    async def acquire(self, source: str) -> float:
        """Takes one token for source, waiting if necessary. Returns the seconds waited."""
        bucket = self._bucket(source)
        if bucket.lock is None:
            bucket.lock = asyncio.Lock()
        async with bucket.lock:
            self._refill(bucket)
            waited = 0.0
            if bucket.tokens < 1:
                waited = (1 - bucket.tokens) / bucket.per_second
                logger.info(f"[RateLimiter] Waiting {waited:.1f}s for {source}")
                await self._sleep(waited)
                self._refill(bucket)
                # The sleep covered the deficit even if the clock reads otherwise
                bucket.tokens = max(bucket.tokens, 1.0)
            bucket.tokens -= 1
            return waited

    def tokens(self, source: str) -> float:
        bucket = self._bucket(source)
        self._refill(bucket)
        return bucket.tokens

    def _bucket(self, source: str) -> _Bucket:
        bucket = self._buckets.get(source)
        if bucket is None:
            rpm = self.requests_per_minute(source)
            bucket = _Bucket(capacity=rpm, per_second=rpm / 60.0, tokens=rpm, updated_at=self._clock())
            self._buckets[source] = bucket
        return bucket

    def _refill(self, bucket: _Bucket) -> None:
        now = self._clock()
        elapsed = max(0.0, now - bucket.updated_at)
        bucket.tokens = min(bucket.capacity, bucket.tokens + elapsed * bucket.per_second)
        bucket.updated_at = now
