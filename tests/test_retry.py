"""Tests for the retry policy and helpers."""
import asyncio

import pytest

from pageturner.errors import UpstreamError
from pageturner.retry import (
    RetryPolicy,
    execute_with_retry,
    execute_with_retry_async,
    linear_backoff,
)


class Flaky:
    """Callable failing a fixed number of times before succeeding."""

    def __init__(self, failures, result="ok"):
        self.failures = failures
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise UpstreamError(f"failure {self.calls}")
        return self.result


def test_linear_backoff():
    """Test that delays grow linearly with the attempt number."""
    delay = linear_backoff(1.0)
    assert [delay(n) for n in (1, 2, 3)] == [1.0, 2.0, 3.0]


def test_policy_rejects_non_positive_attempts():
    """Test that a policy without any attempt is a configuration error."""
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=-2)


def test_success_on_first_attempt_does_not_sleep():
    """Test the short-circuit on immediate success."""
    sleeps = []
    fn = Flaky(0)

    assert execute_with_retry(fn, RetryPolicy(), sleep=sleeps.append) == "ok"
    assert fn.calls == 1
    assert sleeps == []


def test_two_failures_then_success():
    """Test waits of 1s and 2s before the successful third attempt."""
    sleeps = []
    fn = Flaky(2)

    assert execute_with_retry(fn, RetryPolicy(), sleep=sleeps.append) == "ok"
    assert fn.calls == 3
    assert sleeps == [1.0, 2.0]
    assert sum(sleeps) >= 3.0


def test_final_error_propagates_unchanged():
    """Test that the last attempt's exception object is re-raised."""
    errors = []

    def always_fail():
        error = UpstreamError(f"failure {len(errors) + 1}")
        errors.append(error)
        raise error

    sleeps = []
    with pytest.raises(UpstreamError) as exc_info:
        execute_with_retry(always_fail, RetryPolicy(), sleep=sleeps.append)

    assert len(errors) == 3
    assert exc_info.value is errors[-1]
    assert sleeps == [1.0, 2.0]


def test_unlisted_errors_are_not_retried():
    """Test that only retry_on exceptions trigger another attempt."""
    calls = []

    def broken():
        calls.append(1)
        raise KeyError("bug")

    with pytest.raises(KeyError):
        execute_with_retry(broken, RetryPolicy(), sleep=lambda s: None)
    assert len(calls) == 1


def test_single_attempt_policy():
    """Test that max_attempts=1 fails fast."""
    sleeps = []
    with pytest.raises(UpstreamError):
        execute_with_retry(Flaky(1), RetryPolicy(max_attempts=1), sleep=sleeps.append)
    assert sleeps == []


def test_async_two_failures_then_success():
    """Test the async helper with the same schedule."""
    sleeps = []
    fn = Flaky(2)

    async def attempt():
        return fn()

    async def fake_sleep(delay):
        sleeps.append(delay)

    result = asyncio.run(execute_with_retry_async(attempt, RetryPolicy(), sleep=fake_sleep))

    assert result == "ok"
    assert sleeps == [1.0, 2.0]


def test_async_three_failures_propagate():
    """Test that the async helper gives up after three attempts."""
    fn = Flaky(3)

    async def attempt():
        return fn()

    async def fake_sleep(delay):
        pass

    with pytest.raises(UpstreamError):
        asyncio.run(execute_with_retry_async(attempt, RetryPolicy(), sleep=fake_sleep))
    assert fn.calls == 3
