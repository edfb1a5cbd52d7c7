# src/pipeline/executor.py — v1
"""Stage executors: how an enqueued stage gets run.

The orchestrator decides *what* runs next; an executor decides *when*.
InlineExecutor awaits the stage immediately (auto-chaining becomes a
straight sequence of awaits). BackgroundExecutor schedules each stage as
an asyncio task, so start/resume calls return while the run proceeds.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from enliterator.core.stages import StageName

logger = logging.getLogger(__name__)

StageJob = Callable[[StageName, str], Awaitable[None]]


class BaseExecutor(ABC):
    """Runs stage jobs handed over by the orchestrator."""

    def __init__(self) -> None:
        self._job: StageJob | None = None

    def bind(self, job: StageJob) -> None:
        """Attach the callable that executes one stage of one run."""
        self._job = job

    def _require_job(self) -> StageJob:
        if self._job is None:
            raise RuntimeError("Executor is not bound to an orchestrator")
        return self._job

    @abstractmethod
    async def enqueue(self, stage: StageName, run_id: str) -> None:
        """Schedule ``stage`` of run ``run_id``."""

    async def join(self) -> None:
        """Wait until no scheduled stage is outstanding."""


class InlineExecutor(BaseExecutor):
    """Runs the stage in the caller's task."""

    async def enqueue(self, stage: StageName, run_id: str) -> None:
        await self._require_job()(stage, run_id)


class BackgroundExecutor(BaseExecutor):
    """Runs each stage as its own asyncio task."""

    def __init__(self) -> None:
        super().__init__()
        self._tasks: set[asyncio.Task] = set()

    async def enqueue(self, stage: StageName, run_id: str) -> None:
        job = self._require_job()
        task = asyncio.create_task(job(stage, run_id), name=f"{run_id}:{stage.value}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("Enqueued %s for run %s", stage.value, run_id)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def join(self) -> None:
        # A finishing stage may enqueue the next one, so drain until empty.
        while self._tasks:
            await asyncio.gather(*list(self._tasks))


def create_executor(kind: str = "inline") -> BaseExecutor:
    if kind == "background":
        return BackgroundExecutor()
    if kind == "inline":
        return InlineExecutor()
    raise ValueError(f"Unknown executor: {kind!r}. Available: inline, background")
