"""Tests for the single-timer deadline scheduler."""

import asyncio

import pytest

from duplexline.core.timeouts import TimeoutScheduler


class TestTimeoutScheduler:
    """Deadlines multiplexed onto one timer."""

    @pytest.mark.asyncio
    @pytest.mark.timeout(5)
    async def test_callback_fires_once_after_duration(self):
        scheduler = TimeoutScheduler()
        fired = []

        scheduler.add("a", 10, lambda: fired.append("a"))
        assert scheduler.has("a")
        assert len(scheduler) == 1

        await asyncio.sleep(0.05)
        assert fired == ["a"]
        assert not scheduler.has("a")
        assert scheduler.size == 0

        await asyncio.sleep(0.03)
        assert fired == ["a"]

    @pytest.mark.asyncio
    @pytest.mark.timeout(5)
    async def test_removed_deadline_never_fires(self):
        scheduler = TimeoutScheduler()
        fired = []

        scheduler.add("a", 10, lambda: fired.append("a"))
        assert scheduler.remove("a") is True
        assert scheduler.remove("a") is False

        await asyncio.sleep(0.04)
        assert fired == []

    @pytest.mark.asyncio
    @pytest.mark.timeout(5)
    async def test_earlier_deadline_added_later_fires_first(self):
        """Adding an earlier deadline SHALL re-arm the shared timer."""
        scheduler = TimeoutScheduler()
        fired = []

        scheduler.add("slow", 60, lambda: fired.append("slow"))
        scheduler.add("fast", 10, lambda: fired.append("fast"))

        await asyncio.sleep(0.03)
        assert fired == ["fast"]
        assert scheduler.has("slow")

        await asyncio.sleep(0.08)
        assert fired == ["fast", "slow"]

    @pytest.mark.asyncio
    @pytest.mark.timeout(5)
    async def test_raising_callback_does_not_block_others(self):
        scheduler = TimeoutScheduler()
        fired = []

        def boom():
            raise RuntimeError("boom")

        scheduler.add("bad", 5, boom)
        scheduler.add("good", 5, lambda: fired.append("good"))

        await asyncio.sleep(0.04)
        assert fired == ["good"]
        assert len(scheduler) == 0

    @pytest.mark.asyncio
    @pytest.mark.timeout(5)
    async def test_re_adding_replaces_deadline(self):
        scheduler = TimeoutScheduler()
        fired = []

        scheduler.add("a", 10, lambda: fired.append("first"))
        scheduler.add("a", 10, lambda: fired.append("second"))

        await asyncio.sleep(0.04)
        assert fired == ["second"]

    @pytest.mark.asyncio
    @pytest.mark.timeout(5)
    async def test_callback_may_schedule_new_deadline(self):
        scheduler = TimeoutScheduler()
        fired = []

        def first():
            fired.append("first")
            scheduler.add("second", 5, lambda: fired.append("second"))

        scheduler.add("first", 5, first)

        await asyncio.sleep(0.06)
        assert fired == ["first", "second"]

    @pytest.mark.asyncio
    @pytest.mark.timeout(5)
    async def test_clear_drops_everything_without_firing(self):
        scheduler = TimeoutScheduler()
        fired = []

        for i in range(5):
            scheduler.add(str(i), 10, lambda i=i: fired.append(i))
        scheduler.clear()

        await asyncio.sleep(0.04)
        assert fired == []
        assert len(scheduler) == 0

    @pytest.mark.asyncio
    @pytest.mark.timeout(5)
    async def test_destroy_is_terminal(self):
        scheduler = TimeoutScheduler()
        fired = []

        scheduler.add("a", 10, lambda: fired.append("a"))
        scheduler.destroy()
        scheduler.add("b", 10, lambda: fired.append("b"))

        await asyncio.sleep(0.04)
        assert fired == []
        assert not scheduler.has("b")
