"""Retry policy and execute-with-retry helpers."""
import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Tuple, Type, TypeVar
import logging

from pageturner.errors import UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def linear_backoff(base: float = 1.0) -> Callable[[int], float]:
    """
    Build a linear backoff function.

    Args:
        base: Delay in seconds after the first failed attempt

    Returns:
        Function mapping the 1-indexed failed attempt to a delay (base * attempt)
    """
    def delay(attempt: int) -> float:
        return base * attempt
    return delay


@dataclass(frozen=True)
class RetryPolicy:
    """How many attempts to make and how long to wait between them."""
    max_attempts: int = 3
    backoff: Callable[[int], float] = field(default_factory=linear_backoff)
    retry_on: Tuple[Type[BaseException], ...] = (UpstreamError,)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")


def execute_with_retry(
    fn: Callable[[], T],
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep
) -> T:
    """
    Call fn until it succeeds or the policy runs out of attempts.

    Attempts are strictly sequential. The error from the final attempt is
    re-raised unchanged.

    Args:
        fn: Zero-argument callable making one attempt
        policy: Retry policy to apply
        sleep: Sleep function (injectable for tests)

    Returns:
        Whatever fn returns on the first successful attempt
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return fn()
        except policy.retry_on as e:
            if attempt == policy.max_attempts:
                logger.error(f"All {policy.max_attempts} attempts failed: {e}")
                raise
            delay = policy.backoff(attempt)
            logger.warning(
                f"Attempt {attempt}/{policy.max_attempts} failed ({e}); "
                f"retrying in {delay:.2f}s"
            )
            sleep(delay)
    raise AssertionError("unreachable")


async def execute_with_retry_async(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
) -> T:
    """Async counterpart of execute_with_retry."""
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await fn()
        except policy.retry_on as e:
            if attempt == policy.max_attempts:
                logger.error(f"All {policy.max_attempts} attempts failed: {e}")
                raise
            delay = policy.backoff(attempt)
            logger.warning(
                f"Async attempt {attempt}/{policy.max_attempts} failed ({e}); "
                f"retrying in {delay:.2f}s"
            )
            await sleep(delay)
    raise AssertionError("unreachable")
