"""Retry policy shared by the embedding and vector store clients."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Callable

Sleeper = Callable[[float], None]


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded attempts with linear backoff (``base_delay * attempt``) plus optional jitter.

    ``sleep`` is injectable so callers can observe waits in tests.
    """

    max_attempts: int = 3
    base_delay: float = 2.0
    jitter: float = 0.0
    sleep: Sleeper = field(default=time.sleep, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.jitter < 0:
            raise ValueError("delays must be non-negative")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given 1-based failed attempt."""
        delay = self.base_delay * attempt
        if self.jitter:
            delay += random.uniform(0, self.jitter)
        return delay

    def wait(self, seconds: float) -> None:
        if seconds > 0:
            self.sleep(seconds)

    def backoff(self, attempt: int) -> float:
        delay = self.delay_for(attempt)
        self.wait(delay)
        return delay


__all__ = ["RetryPolicy", "Sleeper"]
