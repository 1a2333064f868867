"""Fixed-window rate limiting keyed by caller identity."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable


@dataclass(slots=True)
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """Allow ``limit`` requests per ``window`` seconds for each key.

    Expired windows are swept at most once per ``window``, so only keys seen
    in roughly the last two windows are held in memory.

    Example:
        limiter = FixedWindowRateLimiter(limit=10, window=60)
        if not limiter.is_allowed("10.0.0.1"):
            ...
    """

    def __init__(
        self,
        limit: int = 10,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.limit = limit
        self.window = window
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._next_sweep = clock() + window

    def is_allowed(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
            record = self._windows.get(key)
            if record is None or now > record.reset_at:
                record = _Window(count=0, reset_at=now + self.window)
                self._windows[key] = record
            if record.count >= self.limit:
                return False
            record.count += 1
            return True

    def _sweep(self, now: float) -> None:
        expired = [key for key, record in self._windows.items() if now > record.reset_at]
        for key in expired:
            del self._windows[key]
        self._next_sweep = now + self.window


__all__ = ["FixedWindowRateLimiter"]
