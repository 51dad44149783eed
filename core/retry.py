"""
Core Module - Retry Policy.

============================================================
PURPOSE
============================================================
One reusable object for every bounded retry/poll loop:

- LedgerSubmitter confirmation polling (fixed interval)
- LedgerRpcClient request retries (exponential backoff)

CRITICAL CONSTRAINTS:
- Hard attempt ceiling, no infinite loops
- Errors count toward the ceiling
- Terminal results stop the loop immediately

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Generic, Optional, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


class PollDecision(Enum):
    """Classification of one poll result."""
    SUCCESS = "success"
    FAILURE = "failure"
    CONTINUE = "continue"


class PollOutcome(Enum):
    """How a poll loop ended."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    EXHAUSTED = "exhausted"


@dataclass
class PollResult(Generic[T]):
    """Result of RetryPolicy.poll()."""

    outcome: PollOutcome
    attempts: int
    value: Optional[T] = None
    last_error: Optional[Exception] = None


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry policy.

    delay_for(n) = interval_seconds * backoff_multiplier ** n,
    capped at max_interval_seconds when set.
    """

    max_attempts: int
    """Total attempts, including the first."""

    interval_seconds: float
    """Delay after the first attempt."""

    backoff_multiplier: float = 1.0
    """1.0 = fixed interval, 2.0 = exponential doubling."""

    max_interval_seconds: Optional[float] = None
    """Upper bound on any single delay."""

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds cannot be negative")
        if self.backoff_multiplier < 1.0:
            raise ValueError("backoff_multiplier must be >= 1.0")

    @classmethod
    def fixed(cls, max_attempts: int, interval_seconds: float) -> "RetryPolicy":
        return cls(max_attempts=max_attempts, interval_seconds=interval_seconds)

    @classmethod
    def exponential(
        cls,
        max_attempts: int,
        base_seconds: float,
        max_interval_seconds: Optional[float] = None,
    ) -> "RetryPolicy":
        return cls(
            max_attempts=max_attempts,
            interval_seconds=base_seconds,
            backoff_multiplier=2.0,
            max_interval_seconds=max_interval_seconds,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the zero-based attempt number."""
        delay = self.interval_seconds * (self.backoff_multiplier ** attempt)
        if self.max_interval_seconds is not None:
            delay = min(delay, self.max_interval_seconds)
        return delay

    @property
    def total_budget_seconds(self) -> float:
        """Upper bound on time spent sleeping across all attempts."""
        return sum(self.delay_for(n) for n in range(self.max_attempts - 1))

    async def poll(
        self,
        operation: Callable[[], Awaitable[T]],
        classify: Callable[[T], PollDecision],
        is_transient: Callable[[Exception], bool] = lambda e: True,
        label: str = "poll",
    ) -> PollResult[T]:
        """
        Run operation until classify() says SUCCESS/FAILURE or
        the attempt ceiling is reached.

        A transient exception counts as an attempt; a non-transient
        one propagates immediately.
        """
        last_error: Optional[Exception] = None
        last_value: Optional[T] = None

        for attempt in range(self.max_attempts):
            try:
                value = await operation()
            except Exception as e:
                if not is_transient(e):
                    raise
                last_error = e
                logger.warning(
                    f"[{label}] Attempt {attempt + 1}/{self.max_attempts} errored: {e}"
                )
            else:
                last_value = value
                decision = classify(value)
                if decision is PollDecision.SUCCESS:
                    return PollResult(PollOutcome.SUCCEEDED, attempt + 1, value, last_error)
                if decision is PollDecision.FAILURE:
                    return PollResult(PollOutcome.FAILED, attempt + 1, value, last_error)

            if attempt < self.max_attempts - 1:
                await asyncio.sleep(self.delay_for(attempt))

        return PollResult(PollOutcome.EXHAUSTED, self.max_attempts, last_value, last_error)
