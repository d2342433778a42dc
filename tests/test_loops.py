"""Tests for PeriodicTask."""

import asyncio

import pytest

from specialist_scheduling.loops import PeriodicTask


class TestPeriodicTask:
    def test_rejects_non_positive_interval(self):
        async def noop():
            return None

        with pytest.raises(ValueError):
            PeriodicTask("bad", 0, noop)

    @pytest.mark.asyncio
    async def test_run_once_returns_result(self):
        async def work():
            return 42

        task = PeriodicTask("work", 1.0, work)
        assert await task.run_once() == 42
        assert task.runs == 1
        assert task.errors == 0

    @pytest.mark.asyncio
    async def test_run_once_survives_errors(self):
        async def boom():
            raise RuntimeError("store down")

        task = PeriodicTask("boom", 1.0, boom)
        assert await task.run_once() is None
        assert task.errors == 1

    @pytest.mark.asyncio
    async def test_loop_keeps_running_after_failure(self):
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first call fails")

        task = PeriodicTask("flaky", 0.01, flaky)
        task.start()
        assert task.running
        for _ in range(100):
            if len(calls) >= 3:
                break
            await asyncio.sleep(0.01)
        await task.stop()

        assert len(calls) >= 3
        assert task.errors == 1
        assert not task.running

    @pytest.mark.asyncio
    async def test_start_is_idempotent_and_stop_without_start(self):
        async def noop():
            return None

        task = PeriodicTask("noop", 10.0, noop)
        await task.stop()

        task.start()
        first = task._task
        task.start()
        assert task._task is first
        await task.stop()
