"""Tests for the fixed-window rate limiter."""

from campus_chat.core.ratelimit import FixedWindowRateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_limit_applies_per_key_within_a_window() -> None:
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(limit=2, window=60, clock=clock)

    assert [limiter.is_allowed("10.0.0.1") for _ in range(3)] == [True, True, False]
    assert limiter.is_allowed("10.0.0.2") is True

    clock.now += 61
    assert limiter.is_allowed("10.0.0.1") is True


def test_expired_windows_do_not_accumulate() -> None:
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(limit=5, window=60, clock=clock)

    for i in range(10_000):
        clock.now += 61
        assert limiter.is_allowed(f"10.0.{i // 256}.{i % 256}") is True

    assert len(limiter._windows) <= 2


def test_live_windows_survive_a_sweep() -> None:
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(limit=1, window=60, clock=clock)
    limiter.is_allowed("busy")

    clock.now += 59
    limiter.is_allowed("other")
    clock.now += 2  # past the first sweep deadline, "other" still inside its window
    limiter.is_allowed("late")

    assert "other" in limiter._windows
    assert "busy" not in limiter._windows
    assert limiter.is_allowed("other") is False
