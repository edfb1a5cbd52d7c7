# src/pipeline/watchdog.py — v1
"""Stale run detection.

A running run whose last progress (item completion or stage start) is
older than WATCHDOG_STALE_MINUTES is flagged: ``stale_since`` is set on
the run and a diagnostic with the suggested recovery command is logged
and returned. The watchdog never changes run status; recovery is an
explicit ``resume``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable

from enliterator.config.settings import Settings
from enliterator.core.models import PipelineRun, RunStatus, utcnow
from enliterator.core.stages import stage_ordinal
from enliterator.storage.base_store import BasePipelineStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StaleRunDiagnostic:
    """Everything an operator needs to decide on recovery."""

    run_id: str
    batch_id: str
    stage: str | None
    stage_ordinal: int
    last_progress_at: datetime
    stale_for_s: float
    suggested_command: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "batch_id": self.batch_id,
            "stage": self.stage,
            "stage_ordinal": self.stage_ordinal,
            "last_progress_at": self.last_progress_at.isoformat(),
            "stale_for_s": round(self.stale_for_s, 1),
            "suggested_command": self.suggested_command,
        }


class Watchdog:
    """Polls running runs and flags the ones that stopped progressing."""

    def __init__(
        self,
        store: BasePipelineStore,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.poll_seconds = settings.watchdog_poll_seconds
        self.stale_after = timedelta(minutes=settings.watchdog_stale_minutes)
        self._clock = clock
        self._sleep = sleep

    async def check(self, run_id: str) -> StaleRunDiagnostic | None:
        """Single poll of one run; returns a diagnostic if it is stale."""
        return await self._inspect(await self.store.get_run(run_id))

    async def check_all(self) -> list[StaleRunDiagnostic]:
        """Single poll of every running run."""
        diagnostics = []
        for run in await self.store.list_runs(statuses=[RunStatus.RUNNING]):
            diagnostic = await self._inspect(run)
            if diagnostic is not None:
                diagnostics.append(diagnostic)
        return diagnostics

    async def watch(self, run_id: str, max_polls: int | None = None) -> StaleRunDiagnostic | None:
        """Poll until the run stops running, turns stale, or max_polls is hit."""
        polls = 0
        while max_polls is None or polls < max_polls:
            polls += 1
            run = await self.store.get_run(run_id)
            if run.status != RunStatus.RUNNING:
                logger.info("Run %s is %s; watchdog stops", run_id, run.status.value)
                return None
            diagnostic = await self._inspect(run)
            if diagnostic is not None:
                return diagnostic
            await self._sleep(self.poll_seconds)
        return None

    async def _inspect(self, run: PipelineRun) -> StaleRunDiagnostic | None:
        if run.status != RunStatus.RUNNING:
            return None
        now = self._clock()
        idle = now - run.last_progress_at
        if idle <= self.stale_after:
            return None

        if run.stale_since is None:
            run.stale_since = now
            since = run.last_progress_at.isoformat(timespec="seconds")
            run.log_activity("stale", run.current_stage, f"no progress since {since}")
            await self.store.save_run(run)

        diagnostic = StaleRunDiagnostic(
            run_id=run.id,
            batch_id=run.batch_id,
            stage=run.current_stage.value if run.current_stage else None,
            stage_ordinal=stage_ordinal(run.current_stage) if run.current_stage else 0,
            last_progress_at=run.last_progress_at,
            stale_for_s=idle.total_seconds(),
            suggested_command=f"enliterator resume {run.id}",
        )
        logger.warning(
            "Run %s looks stuck at %s: no progress for %.0fs",
            run.id, diagnostic.stage, diagnostic.stale_for_s,
            extra={"data": diagnostic.to_dict()},
        )
        return diagnostic
