"""
Backoff delay providers.

A backoff policy maps an attempt number (1-indexed, the attempt that just
failed) to the number of seconds to wait before the next one. Delays only
throttle retries; correctness never depends on them.

Policies must be non-decreasing in ``attempt``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

DEFAULT_INITIAL_DELAY = 0.25
DEFAULT_FACTOR = 2.0
DEFAULT_MAX_DELAY = 8.0


@runtime_checkable
class BackoffPolicy(Protocol):
    """Maps a failed attempt number to a delay in seconds."""

    def delay_for(self, attempt: int) -> float:
        ...


def _validate_attempt(attempt: int) -> None:
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got: {attempt}")


@dataclass(frozen=True)
class ExponentialBackoff:
    """``min(initial * factor ** (attempt - 1), maximum)``.

    Attributes:
        initial: Delay after the first failed attempt, in seconds.
        factor: Growth factor per attempt (>= 1).
        maximum: Upper bound on any single delay, in seconds.
    """

    initial: float = DEFAULT_INITIAL_DELAY
    factor: float = DEFAULT_FACTOR
    maximum: float = DEFAULT_MAX_DELAY

    def __post_init__(self) -> None:
        if self.initial <= 0:
            raise ValueError(f"initial must be > 0, got: {self.initial}")
        if self.factor < 1:
            raise ValueError(f"factor must be >= 1, got: {self.factor}")
        if self.maximum < self.initial:
            raise ValueError(
                f"maximum must be >= initial ({self.initial}), got: {self.maximum}"
            )

    def delay_for(self, attempt: int) -> float:
        _validate_attempt(attempt)
        delay = self.initial
        # Stop multiplying once capped; large attempt numbers would overflow.
        for _ in range(attempt - 1):
            delay *= self.factor
            if delay >= self.maximum:
                return self.maximum
        return min(delay, self.maximum)


@dataclass(frozen=True)
class ConstantBackoff:
    """Same delay after every attempt."""

    delay: float = 0.0

    def __post_init__(self) -> None:
        if self.delay < 0:
            raise ValueError(f"delay must be >= 0, got: {self.delay}")

    def delay_for(self, attempt: int) -> float:
        _validate_attempt(attempt)
        return self.delay
