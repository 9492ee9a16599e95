"""Retry policy and a generic attempt executor.

One executor serves every bounded retry in the checkout: mint quote polling
(constant interval, many attempts) and order message delivery (exponential
backoff, three attempts). The operation decides what counts as "try again"
by raising one of the ``retry_on`` exception types; anything else propagates
immediately.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Backoff = Callable[[int], float]
Sleep = Callable[[float], Awaitable[None]]


def constant_backoff(delay: float) -> Backoff:
    """Wait the same ``delay`` seconds after every failed attempt."""

    def _delay(attempt: int) -> float:  # noqa: ARG001
        return delay

    return _delay


def exponential_backoff(base_delay: float = 1.0, factor: float = 2.0, max_delay: float | None = None) -> Backoff:
    """Wait ``base_delay * factor ** (attempt - 1)`` seconds: 1s, 2s, 4s, ..."""

    def _delay(attempt: int) -> float:
        delay = base_delay * factor ** (attempt - 1)
        if max_delay is not None:
            return min(delay, max_delay)
        return delay

    return _delay


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try, and how long to wait between tries."""

    max_attempts: int
    backoff: Backoff = field(default_factory=lambda: constant_backoff(0.0))

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

    def delay_after(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        return max(0.0, self.backoff(attempt))

    @classmethod
    def polling(cls, max_attempts: int, interval: float) -> "RetryPolicy":
        return cls(max_attempts=max_attempts, backoff=constant_backoff(interval))

    @classmethod
    def exponential(cls, max_attempts: int = 3, base_delay: float = 1.0) -> "RetryPolicy":
        return cls(max_attempts=max_attempts, backoff=exponential_backoff(base_delay))


class RetriesExhausted(Exception):
    """Every attempt allowed by the policy failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException | None):
        super().__init__(f"Gave up after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


async def attempt(
    operation: Callable[[int], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Sleep = asyncio.sleep,
    operation_name: str = "operation",
) -> T:
    """Run ``operation(attempt_number)`` until it returns or the policy gives up.

    Returns the operation's result on the first success. Errors matching
    ``retry_on`` trigger a wait of ``policy.delay_after(n)`` seconds and
    another attempt; after the last attempt they are wrapped in
    ``RetriesExhausted``. Errors not matching ``retry_on`` are re-raised
    untouched, without further attempts.
    """
    last_error: BaseException | None = None

    for number in range(1, policy.max_attempts + 1):
        try:
            return await operation(number)
        except retry_on as exc:
            last_error = exc
            if number == policy.max_attempts:
                break

            delay = policy.delay_after(number)
            logger.debug(
                "Attempt failed, retrying",
                operation=operation_name,
                attempt=number,
                max_attempts=policy.max_attempts,
                delay=delay,
                error=str(exc),
            )
            await sleep(delay)

    raise RetriesExhausted(policy.max_attempts, last_error) from last_error
