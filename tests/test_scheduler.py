"""Tests for the per-room turn scheduler."""
import asyncio

import pytest

from pokerroom.session.scheduler import TurnScheduler


class TestTurnScheduler:
    @pytest.mark.asyncio
    async def test_runs_callback_after_delay(self):
        scheduler = TurnScheduler()
        fired = asyncio.Event()

        async def callback():
            fired.set()

        scheduler.schedule("ROOM1", 0.01, callback)
        await asyncio.wait_for(fired.wait(), timeout=1)

        assert scheduler.pending("ROOM1") is None

    @pytest.mark.asyncio
    async def test_new_schedule_supersedes_pending(self):
        scheduler = TurnScheduler()
        calls = []

        async def first():
            calls.append("first")

        async def second():
            calls.append("second")

        old = scheduler.schedule("ROOM1", 0.05, first)
        new = scheduler.schedule("ROOM1", 0.01, second)
        await asyncio.gather(old, new, return_exceptions=True)

        assert calls == ["second"]
        assert old.cancelled()

    @pytest.mark.asyncio
    async def test_rooms_are_independent(self):
        scheduler = TurnScheduler()
        calls = []

        async def mark(code):
            calls.append(code)

        a = scheduler.schedule("A", 0.01, lambda: mark("A"))
        b = scheduler.schedule("B", 0.01, lambda: mark("B"))
        await asyncio.gather(a, b)

        assert sorted(calls) == ["A", "B"]

    @pytest.mark.asyncio
    async def test_callback_can_schedule_successor(self):
        scheduler = TurnScheduler()
        done = asyncio.Event()

        async def last():
            done.set()

        async def chain():
            scheduler.schedule("ROOM1", 0.01, last)

        scheduler.schedule("ROOM1", 0.01, chain)
        await asyncio.wait_for(done.wait(), timeout=1)

    @pytest.mark.asyncio
    async def test_cancel(self):
        scheduler = TurnScheduler()
        calls = []

        async def callback():
            calls.append(1)

        scheduler.schedule("ROOM1", 0.05, callback)

        assert scheduler.cancel("ROOM1") is True
        assert scheduler.cancel("ROOM1") is False
        await asyncio.sleep(0.1)
        assert calls == []

    @pytest.mark.asyncio
    async def test_failing_callback_is_contained(self):
        scheduler = TurnScheduler()

        async def boom():
            raise RuntimeError("boom")

        task = scheduler.schedule("ROOM1", 0, boom)
        await task

        assert task.exception() is None

    @pytest.mark.asyncio
    async def test_shutdown_cancels_everything(self):
        scheduler = TurnScheduler()

        async def never():
            raise AssertionError("should not run")

        tasks = [
            scheduler.schedule("A", 10, never),
            scheduler.schedule("B", 10, never),
        ]
        await scheduler.shutdown()

        assert all(t.cancelled() for t in tasks)
        assert scheduler.pending("A") is None
