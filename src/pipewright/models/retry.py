"""Retry policy for stage attempts."""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum


class Backoff(Enum):
    FIXED = "fixed"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class RetryPolicy:
    """Caller-side retry policy for a stage.

    Each attempt is isolated: fresh stage context, fresh secret scope, and
    nothing from a failed attempt is committed.

    Attributes:
        max_attempts: Total attempts including the first one
        backoff: FIXED or EXPONENTIAL
        delay_seconds: Base delay between attempts
        max_delay_seconds: Cap for exponential growth
        jitter: Random jitter factor (0.0 to 1.0)
    """

    max_attempts: int = 1
    backoff: Backoff = Backoff.FIXED
    delay_seconds: float = 1.0
    max_delay_seconds: float = 60.0
    jitter: float = 0.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay_seconds < 0 or self.max_delay_seconds < 0:
            raise ValueError("retry delays must not be negative")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError("jitter must be between 0.0 and 1.0")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        if self.backoff == Backoff.EXPONENTIAL:
            base = min(self.delay_seconds * (2 ** (attempt - 1)), self.max_delay_seconds)
        else:
            base = self.delay_seconds
        if self.jitter:
            base += base * random.uniform(-self.jitter, self.jitter)
        return max(base, 0.0)
