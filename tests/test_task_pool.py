"""
Marketplace Backend — Background Task Pool Tests
=================================================

What we test:
    ✅ Every task reports exactly one outcome, success or failure
    ✅ Concurrency never exceeds max_workers
    ✅ drain() waits, then cancels what is left
    ✅ A closed pool refuses new work
"""

import asyncio

import pytest

from marketplace.services.task_pool import BackgroundTaskPool


class TestBackgroundTaskPool:
    def setup_method(self):
        self.outcomes = []

    def _pool(self, max_workers=2):
        return BackgroundTaskPool(max_workers=max_workers, sink=self.outcomes.append)

    @pytest.mark.asyncio
    async def test_success_outcome_carries_result_and_context(self):
        pool = self._pool()

        async def job(value):
            return value * 2

        await pool.submit("double", job, 21, user_id=7)
        await pool.drain()

        assert len(self.outcomes) == 1
        outcome = self.outcomes[0]
        assert outcome.ok and outcome.result == 42
        assert outcome.name == "double"
        assert outcome.context == {"user_id": 7}
        assert outcome.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_failure_is_reported_not_raised(self):
        pool = self._pool()

        async def job():
            raise OSError("smtp down")

        outcome = await pool.submit("welcome_email", job)

        assert not outcome.ok
        assert isinstance(outcome.error, OSError)
        assert self.outcomes == [outcome]

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        pool = self._pool(max_workers=2)
        running = 0
        peak = 0

        async def job():
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.02)
            running -= 1

        for i in range(6):
            pool.submit(f"job-{i}", job)
        await pool.drain(timeout=2)

        assert peak == 2
        assert len(self.outcomes) == 6

    @pytest.mark.asyncio
    async def test_drain_cancels_stragglers(self):
        pool = self._pool()

        async def slow():
            await asyncio.sleep(10)

        task = pool.submit("slow", slow)
        finished = await pool.drain(timeout=0.05)

        assert finished == []
        assert task.cancelled()
        assert pool.pending == 0
        assert self.outcomes == []

    @pytest.mark.asyncio
    async def test_submit_after_drain(self):
        pool = self._pool()
        await pool.drain()

        async def job():
            return None

        with pytest.raises(RuntimeError):
            pool.submit("late", job)

    @pytest.mark.asyncio
    async def test_broken_sink_does_not_break_the_pool(self):
        def sink(outcome):
            raise ValueError("sink exploded")

        pool = BackgroundTaskPool(max_workers=1, sink=sink)

        async def job():
            return "ok"

        outcome = await pool.submit("job", job)
        assert outcome.ok
