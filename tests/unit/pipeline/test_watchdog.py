# tests/unit/pipeline/test_watchdog.py — v1
"""Tests for pipeline/watchdog.py: stale run detection with a fake clock."""

from __future__ import annotations

from datetime import timedelta

import pytest

from enliterator.core.models import PipelineRun, RunStatus, utcnow
from enliterator.core.stages import StageName
from enliterator.pipeline.watchdog import Watchdog
from enliterator.storage.memory_store import MemoryPipelineStore


class FakeClock:
    def __init__(self):
        self.now = utcnow()

    def __call__(self):
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += timedelta(minutes=minutes)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryPipelineStore()


@pytest.fixture
def watchdog(store, settings, clock):
    sleeps: list[float] = []

    async def sleep(seconds: float) -> None:
        sleeps.append(seconds)
        clock.advance(5)

    dog = Watchdog(store, settings, clock=clock, sleep=sleep)
    dog.sleeps = sleeps
    return dog


async def running_run(store, clock, batch_id: str = "b1") -> PipelineRun:
    run = PipelineRun(
        batch_id=batch_id,
        current_stage=StageName.GRAPH,
        last_progress_at=clock(),
    )
    await store.create_run(run)
    return run


class TestCheck:
    @pytest.mark.asyncio
    async def test_recent_progress_is_not_stale(self, watchdog, store, clock):
        run = await running_run(store, clock)
        clock.advance(10)
        assert await watchdog.check(run.id) is None
        assert (await store.get_run(run.id)).stale_since is None

    @pytest.mark.asyncio
    async def test_flags_stale_run(self, watchdog, store, clock, settings):
        run = await running_run(store, clock)
        clock.advance(settings.watchdog_stale_minutes + 1)

        diagnostic = await watchdog.check(run.id)
        assert diagnostic is not None
        assert diagnostic.stage == "graph"
        assert diagnostic.stage_ordinal == 5
        assert diagnostic.suggested_command == f"enliterator resume {run.id}"
        assert diagnostic.stale_for_s == pytest.approx((settings.watchdog_stale_minutes + 1) * 60)
        assert diagnostic.to_dict()["run_id"] == run.id

        stored = await store.get_run(run.id)
        assert stored.stale_since == clock()
        assert stored.status == RunStatus.RUNNING
        assert [(e.event, e.stage) for e in stored.activity] == [("stale", StageName.GRAPH)]

    @pytest.mark.asyncio
    async def test_keeps_first_stale_timestamp(self, watchdog, store, clock, settings):
        run = await running_run(store, clock)
        clock.advance(settings.watchdog_stale_minutes + 1)
        await watchdog.check(run.id)
        first = (await store.get_run(run.id)).stale_since

        clock.advance(30)
        await watchdog.check(run.id)
        assert (await store.get_run(run.id)).stale_since == first
        assert len((await store.get_run(run.id)).activity) == 1

    @pytest.mark.asyncio
    async def test_ignores_runs_that_are_not_running(self, watchdog, store, clock, settings):
        run = await running_run(store, clock)
        run.status = RunStatus.PAUSED
        await store.save_run(run)
        clock.advance(settings.watchdog_stale_minutes * 3)
        assert await watchdog.check(run.id) is None

    @pytest.mark.asyncio
    async def test_check_all(self, watchdog, store, clock, settings):
        old = await running_run(store, clock, "b1")
        clock.advance(settings.watchdog_stale_minutes + 1)
        await running_run(store, clock, "b2")

        diagnostics = await watchdog.check_all()
        assert [d.run_id for d in diagnostics] == [old.id]


class TestWatch:
    @pytest.mark.asyncio
    async def test_polls_until_stale(self, watchdog, store, clock, settings):
        run = await running_run(store, clock)
        diagnostic = await watchdog.watch(run.id, max_polls=20)

        assert diagnostic is not None
        assert diagnostic.run_id == run.id
        # Each fake sleep moves the clock five minutes.
        assert len(watchdog.sleeps) == int(settings.watchdog_stale_minutes // 5) + 1

    @pytest.mark.asyncio
    async def test_stops_at_max_polls(self, watchdog, store, clock):
        run = await running_run(store, clock)
        assert await watchdog.watch(run.id, max_polls=2) is None
        assert len(watchdog.sleeps) == 2

    @pytest.mark.asyncio
    async def test_stops_when_run_finishes(self, watchdog, store, clock):
        run = await running_run(store, clock)
        run.status = RunStatus.COMPLETED
        await store.save_run(run)
        assert await watchdog.watch(run.id) is None
        assert watchdog.sleeps == []
