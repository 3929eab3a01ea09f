"""Tests for the sliding-window rate limiter."""

import math

from hypothesis import given, settings
from hypothesis import strategies as st

from duplexline.core.ratelimit import SlidingWindowRateLimiter


class FakeClock:
    """Manually advanced monotonic clock in seconds."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000


class TestSlidingWindowRateLimiter:
    def test_limit_then_recovery_after_window(self):
        """limit=3: three acquisitions succeed, the fourth fails, and capacity
        returns once the window has elapsed.
        """
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(3, 1000, clock=clock)

        assert [limiter.try_acquire() for _ in range(3)] == [True, True, True]
        assert limiter.try_acquire() is False
        assert limiter.is_limited()

        clock.advance_ms(1000)
        assert limiter.try_acquire() is True

    def test_window_slides_per_timestamp(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(2, 1000, clock=clock)

        assert limiter.try_acquire()
        clock.advance_ms(400)
        assert limiter.try_acquire()
        assert not limiter.try_acquire()

        # Only the first timestamp has left the window
        clock.advance_ms(600)
        assert limiter.try_acquire()
        assert not limiter.try_acquire()

    def test_counts_and_capacity(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(5, 1000, clock=clock)

        limiter.try_acquire()
        limiter.try_acquire()
        assert limiter.get_current_count() == 2
        assert limiter.get_remaining_capacity() == 3

        clock.advance_ms(1001)
        assert limiter.get_current_count() == 0
        assert limiter.get_remaining_capacity() == 5

    def test_time_until_available(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(1, 1000, clock=clock)

        assert limiter.get_time_until_available() == 0
        limiter.try_acquire()
        clock.advance_ms(250)
        assert math.isclose(limiter.get_time_until_available(), 750)

    def test_zero_limit_disables(self):
        limiter = SlidingWindowRateLimiter(0)

        assert not limiter.enabled
        assert all(limiter.try_acquire() for _ in range(1000))
        assert limiter.get_remaining_capacity() == math.inf
        assert limiter.get_current_count() == 0
        assert not limiter.is_limited()

    def test_reset_restores_full_capacity(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(2, 1000, clock=clock)

        limiter.try_acquire()
        limiter.try_acquire()
        limiter.reset()

        assert limiter.get_current_count() == 0
        assert limiter.try_acquire()


@given(
    limit=st.integers(min_value=1, max_value=20),
    attempts=st.integers(min_value=0, max_value=60),
)
@settings(max_examples=100)
def test_never_exceeds_limit_within_window(limit, attempts):
    """For any limit, at most ``limit`` acquisitions SHALL succeed inside one window."""
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(limit, 1000, clock=clock)

    granted = 0
    for _ in range(attempts):
        if limiter.try_acquire():
            granted += 1
        clock.advance_ms(1)

    assert granted == min(limit, attempts)
    assert limiter.get_current_count() <= limit
