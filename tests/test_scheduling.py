"""Tests for the task scheduler."""

import asyncio

import pytest

from modsync.utils.scheduling import Scheduler, create_task


class TestScheduler:
    """Tests for Scheduler."""

    @pytest.mark.asyncio
    async def test_schedule_later_runs_once(self):
        scheduler = Scheduler("test")
        calls = []

        async def job():
            calls.append("ran")

        assert scheduler.schedule_later(0.01, "job", job()) is True
        assert "job" in scheduler

        await asyncio.sleep(0.05)

        assert calls == ["ran"]
        assert "job" not in scheduler

    @pytest.mark.asyncio
    async def test_same_id_is_not_scheduled_twice(self):
        scheduler = Scheduler("test")
        calls = []

        async def job(name):
            calls.append(name)

        assert scheduler.schedule_later(0.01, "job", job("first")) is True
        assert scheduler.schedule_later(0.01, "job", job("second")) is False
        assert len(scheduler) == 1

        await asyncio.sleep(0.05)

        assert calls == ["first"]

    @pytest.mark.asyncio
    async def test_cancel(self):
        scheduler = Scheduler("test")
        calls = []

        async def job():
            calls.append("ran")

        scheduler.schedule_later(0.01, "job", job())

        assert scheduler.cancel("job") is True
        assert scheduler.cancel("job") is False

        await asyncio.sleep(0.05)
        assert calls == []

    @pytest.mark.asyncio
    async def test_task_may_cancel_itself(self):
        scheduler = Scheduler("test")
        calls = []

        async def job():
            scheduler.cancel("job")
            await asyncio.sleep(0)
            calls.append("finished")

        scheduler.schedule_later(0, "job", job())
        await asyncio.sleep(0.05)

        assert calls == ["finished"]
        assert len(scheduler) == 0

    @pytest.mark.asyncio
    async def test_cancel_all(self):
        scheduler = Scheduler("test")

        async def job():
            pass

        for task_id in range(3):
            scheduler.schedule_later(10, task_id, job())

        scheduler.cancel_all()
        assert len(scheduler) == 0


@pytest.mark.asyncio
async def test_create_task_suppresses_listed_exceptions():
    async def fail():
        raise ValueError("expected")

    task = create_task(fail(), suppressed_exceptions=(ValueError,), name="failing")

    with pytest.raises(ValueError):
        await task

    assert task.get_name() == "failing"
