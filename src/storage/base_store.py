# src/storage/base_store.py — v1
"""Abstract store for batches, items and pipeline runs."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable

from enliterator.core.models import (
    Batch,
    Item,
    ItemStatus,
    PipelineRun,
    RunStatus,
    StageRecord,
)
from enliterator.core.stages import StageName

# Runs in these states still own their batch.
ACTIVE_RUN_STATUSES = frozenset({RunStatus.RUNNING, RunStatus.PAUSED, RunStatus.FAILED})


class BasePipelineStore(ABC):
    """Durable state behind the orchestrator.

    create_run() is the one operation that must be atomic: it rejects a
    run when the batch already has one in ACTIVE_RUN_STATUSES.
    """

    # --- Batches ---

    @abstractmethod
    async def create_batch(self, batch: Batch, items: list[Item]) -> None:
        """Insert a batch with its items."""

    @abstractmethod
    async def get_batch(self, batch_id: str) -> Batch:
        """Raises NotFoundError if unknown."""

    @abstractmethod
    async def save_batch(self, batch: Batch) -> None:
        """Replace the stored batch document."""

    @abstractmethod
    async def list_batches(self) -> list[Batch]:
        """All batches, newest first."""

    # --- Items ---

    @abstractmethod
    async def get_item(self, item_id: str) -> Item:
        """Raises NotFoundError if unknown."""

    @abstractmethod
    async def list_items(
        self,
        batch_id: str,
        stage: StageName | None = None,
        statuses: Iterable[ItemStatus] | None = None,
    ) -> list[Item]:
        """Items of a batch in ordinal order, optionally filtered on one stage's status."""

    @abstractmethod
    async def save_item(self, item: Item) -> None:
        """Replace one item document."""

    @abstractmethod
    async def update_item_stage(
        self, item_id: str, stage: StageName, record: StageRecord
    ) -> None:
        """Overwrite one stage record of an item, leaving the rest untouched."""

    async def count_by_status(self, batch_id: str, stage: StageName) -> dict[ItemStatus, int]:
        counts = {status: 0 for status in ItemStatus}
        for item in await self.list_items(batch_id):
            counts[item.status(stage)] += 1
        return counts

    # --- Runs ---

    @abstractmethod
    async def create_run(self, run: PipelineRun) -> None:
        """Insert a run.

        Raises:
            RunConflictError: If the batch already has an active run.
        """

    @abstractmethod
    async def get_run(self, run_id: str) -> PipelineRun:
        """Raises NotFoundError if unknown."""

    @abstractmethod
    async def save_run(self, run: PipelineRun) -> None:
        """Replace the stored run document."""

    @abstractmethod
    async def list_runs(
        self,
        batch_id: str | None = None,
        statuses: Iterable[RunStatus] | None = None,
    ) -> list[PipelineRun]:
        """Runs, newest first."""

    async def active_run(self, batch_id: str) -> PipelineRun | None:
        runs = await self.list_runs(batch_id, statuses=ACTIVE_RUN_STATUSES)
        return runs[0] if runs else None

    def close(self) -> None:
        """Release resources (no-op by default)."""
