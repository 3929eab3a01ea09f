"""Deadline scheduler backed by a single asyncio timer.

Instead of one ``loop.call_later`` handle per outstanding request, the
scheduler keeps an id -> deadline map and arms one timer for the nearest
deadline. High request volume therefore costs one dict entry per request
rather than one timer object per request.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger("duplexline.timeouts")

_CLOCK_SLACK = 0.001


@dataclass
class _Deadline:
    deadline: float
    callback: Callable[[], None]


class TimeoutScheduler:
    """Id-keyed deadlines sharing one armed timer.

    Deadlines are measured on the running event loop's monotonic clock.
    Callbacks are plain synchronous callables.

    Args:
        loop: Event loop to schedule on. Defaults to the running loop at the
            time of the first ``add``.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._entries: dict[str, _Deadline] = {}
        self._timer: asyncio.TimerHandle | None = None
        self._next_deadline = float("inf")
        self._destroyed = False

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def add(self, timeout_id: str, duration_ms: float, callback: Callable[[], None]) -> None:
        """Arm ``callback`` to run ``duration_ms`` from now.

        Re-adding an existing id replaces its deadline and callback.
        """
        if self._destroyed:
            return

        loop = self._get_loop()
        deadline = loop.time() + max(0.0, duration_ms) / 1000
        self._entries[timeout_id] = _Deadline(deadline, callback)

        if deadline < self._next_deadline:
            self._arm(deadline)

    def remove(self, timeout_id: str) -> bool:
        """Forget a deadline. The shared timer is left alone."""
        return self._entries.pop(timeout_id, None) is not None

    def has(self, timeout_id: str) -> bool:
        return timeout_id in self._entries

    @property
    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def _arm(self, deadline: float) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._next_deadline = deadline
        self._timer = self._get_loop().call_at(deadline, self._fire)

    def _fire(self) -> None:
        self._timer = None
        self._next_deadline = float("inf")
        if self._destroyed:
            return

        # call_at may run up to one clock tick early
        now = self._get_loop().time() + _CLOCK_SLACK
        expired = [
            (timeout_id, entry.callback)
            for timeout_id, entry in self._entries.items()
            if entry.deadline <= now
        ]
        for timeout_id, _ in expired:
            del self._entries[timeout_id]

        for timeout_id, callback in expired:
            try:
                callback()
            except Exception as e:
                logger.error(
                    f"Timeout callback raised: {e}",
                    extra={"timeout_id": timeout_id, "error": str(e)},
                )

        self._schedule_next()

    def _schedule_next(self) -> None:
        if self._destroyed or not self._entries:
            return
        # A callback may already have armed an earlier deadline via add()
        earliest = min(entry.deadline for entry in self._entries.values())
        if earliest < self._next_deadline:
            self._arm(earliest)

    def clear(self) -> None:
        """Drop every deadline without running any callback."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._entries.clear()
        self._next_deadline = float("inf")

    def destroy(self) -> None:
        """Clear and refuse further ``add`` calls."""
        self._destroyed = True
        self.clear()
