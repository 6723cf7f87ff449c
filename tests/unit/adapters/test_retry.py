"""
Tests for with_retry and the backoff schedule.
"""

import pytest

from registryscout.adapters.retry import backoff_delay, with_retry
from registryscout.domain.errors import RateLimitedError, RetryExhaustedError


def flaky(failures: int, error: Exception = None, value: str = "ok"):
    """Async op that raises `error` for the first `failures` calls, then returns value."""
    calls = {"n": 0}

    async def op():
        calls["n"] += 1
        if calls["n"] <= failures:
            raise error or RateLimitedError("429")
        return value

    return op, calls


class TestBackoffDelay:
    def test_doubles_per_attempt(self):
        assert [backoff_delay(n, 1.0) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]

    def test_is_uncapped(self):
        assert backoff_delay(11, 1.0) == 1024.0


@pytest.mark.asyncio
class TestWithRetry:
    async def test_succeeds_after_two_failures(self, sleep):
        op, calls = flaky(2)
        result = await with_retry(op, max_attempts=3, base_delay=1.0, sleep=sleep)
        assert result == "ok"
        assert calls["n"] == 3
        assert sleep.delays == [1.0, 2.0]

    async def test_exhaustion_raises_with_attempt_count(self, sleep):
        op, calls = flaky(10)
        with pytest.raises(RetryExhaustedError) as exc_info:
            await with_retry(op, max_attempts=3, base_delay=1.0, sleep=sleep)
        assert calls["n"] == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.__cause__, RateLimitedError)
        # No sleep after the final attempt
        assert sleep.delays == [1.0, 2.0]

    async def test_non_retryable_errors_propagate_immediately(self, sleep):
        op, calls = flaky(1, error=KeyError("nope"))
        with pytest.raises(KeyError):
            await with_retry(op, retry_on=(RateLimitedError,), sleep=sleep)
        assert calls["n"] == 1
        assert sleep.delays == []

    async def test_single_attempt_never_sleeps(self, sleep):
        op, _ = flaky(1)
        with pytest.raises(RetryExhaustedError):
            await with_retry(op, max_attempts=1, sleep=sleep)
        assert sleep.delays == []

    async def test_rejects_zero_attempts(self, sleep):
        op, _ = flaky(0)
        with pytest.raises(ValueError):
            await with_retry(op, max_attempts=0, sleep=sleep)
