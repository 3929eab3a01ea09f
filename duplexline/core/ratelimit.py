"""Sliding-window rate limiter over a fixed-size circular buffer."""

import math
import time
from typing import Callable


class SlidingWindowRateLimiter:
    """Bound the number of operations in any trailing ``window_ms`` window.

    Timestamps live in a circular buffer of exactly ``limit`` slots, so time
    and memory stay O(limit) no matter how often ``try_acquire`` is called.

    Args:
        limit: Maximum operations per window. ``limit <= 0`` disables the
            limiter (every acquisition succeeds).
        window_ms: Window length in milliseconds.
        clock: Monotonic clock returning seconds. Injectable for tests.
    """

    def __init__(
        self,
        limit: int,
        window_ms: float = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limit = limit
        self._window_ms = window_ms
        self._clock = clock
        self._enabled = limit > 0
        self._timestamps: list[float] = [0.0] * limit if self._enabled else []
        self._head = 0
        self._tail = 0
        self._count = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_ms(self) -> float:
        return self._window_ms

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def try_acquire(self) -> bool:
        """Record one operation if the window has room."""
        if not self._enabled:
            return True

        now = self._now_ms()
        window_start = now - self._window_ms

        while self._count > 0 and self._timestamps[self._head] <= window_start:
            self._head = (self._head + 1) % self._limit
            self._count -= 1

        if self._count >= self._limit:
            return False

        self._timestamps[self._tail] = now
        self._tail = (self._tail + 1) % self._limit
        self._count += 1
        return True

    def get_current_count(self) -> int:
        """Operations inside the current window, without mutating state."""
        if not self._enabled:
            return 0

        window_start = self._now_ms() - self._window_ms
        live = 0
        idx = self._head
        for _ in range(self._count):
            if self._timestamps[idx] > window_start:
                live += 1
            idx = (idx + 1) % self._limit
        return live

    def get_remaining_capacity(self) -> float:
        if not self._enabled:
            return math.inf
        return max(0, self._limit - self.get_current_count())

    def get_time_until_available(self) -> float:
        """Milliseconds until a slot frees up, 0 if one is free now."""
        if not self._enabled or self._count < self._limit:
            return 0

        window_start = self._now_ms() - self._window_ms
        idx = self._head
        for _ in range(self._count):
            if self._timestamps[idx] > window_start:
                return self._timestamps[idx] - window_start
            idx = (idx + 1) % self._limit
        return 0

    def is_limited(self) -> bool:
        if not self._enabled:
            return False
        return self.get_current_count() >= self._limit

    def reset(self) -> None:
        self._head = 0
        self._tail = 0
        self._count = 0
        if self._enabled:
            self._timestamps = [0.0] * self._limit
