# src/storage/memory_store.py — v1
"""In-process store (STORE_BACKEND=memory), used by tests and dry runs.

Documents are deep-copied on the way in and out so callers never share
mutable state with the store.
"""

from __future__ import annotations

import asyncio
from typing import Iterable

from enliterator.core.errors import NotFoundError, RunConflictError
from enliterator.core.models import (
    Batch,
    Item,
    ItemStatus,
    PipelineRun,
    RunStatus,
    StageRecord,
)
from enliterator.core.stages import StageName
from enliterator.storage.base_store import ACTIVE_RUN_STATUSES, BasePipelineStore


class MemoryPipelineStore(BasePipelineStore):
    """Dict-backed store."""

    def __init__(self) -> None:
        self._batches: dict[str, Batch] = {}
        self._items: dict[str, Item] = {}
        self._runs: dict[str, PipelineRun] = {}
        self._run_lock = asyncio.Lock()

    async def create_batch(self, batch: Batch, items: list[Item]) -> None:
        self._batches[batch.id] = batch.model_copy(deep=True)
        for item in items:
            self._items[item.id] = item.model_copy(deep=True)

    async def get_batch(self, batch_id: str) -> Batch:
        if batch_id not in self._batches:
            raise NotFoundError(f"Batch {batch_id} not found")
        return self._batches[batch_id].model_copy(deep=True)

    async def save_batch(self, batch: Batch) -> None:
        self._batches[batch.id] = batch.model_copy(deep=True)

    async def list_batches(self) -> list[Batch]:
        batches = sorted(self._batches.values(), key=lambda b: b.created_at, reverse=True)
        return [b.model_copy(deep=True) for b in batches]

    async def get_item(self, item_id: str) -> Item:
        if item_id not in self._items:
            raise NotFoundError(f"Item {item_id} not found")
        return self._items[item_id].model_copy(deep=True)

    async def list_items(
        self,
        batch_id: str,
        stage: StageName | None = None,
        statuses: Iterable[ItemStatus] | None = None,
    ) -> list[Item]:
        wanted = set(statuses) if statuses is not None else None
        items = [
            i for i in self._items.values()
            if i.batch_id == batch_id
            and (wanted is None or stage is None or i.status(stage) in wanted)
        ]
        items.sort(key=lambda i: i.ordinal)
        return [i.model_copy(deep=True) for i in items]

    async def save_item(self, item: Item) -> None:
        self._items[item.id] = item.model_copy(deep=True)

    async def update_item_stage(
        self, item_id: str, stage: StageName, record: StageRecord
    ) -> None:
        if item_id not in self._items:
            raise NotFoundError(f"Item {item_id} not found")
        self._items[item_id].stages[stage] = record.model_copy(deep=True)

    async def create_run(self, run: PipelineRun) -> None:
        async with self._run_lock:
            for existing in self._runs.values():
                if existing.batch_id == run.batch_id and existing.status in ACTIVE_RUN_STATUSES:
                    raise RunConflictError(run.batch_id, existing.id)
            self._runs[run.id] = run.model_copy(deep=True)

    async def get_run(self, run_id: str) -> PipelineRun:
        if run_id not in self._runs:
            raise NotFoundError(f"Pipeline run {run_id} not found")
        return self._runs[run_id].model_copy(deep=True)

    async def save_run(self, run: PipelineRun) -> None:
        self._runs[run.id] = run.model_copy(deep=True)

    async def list_runs(
        self,
        batch_id: str | None = None,
        statuses: Iterable[RunStatus] | None = None,
    ) -> list[PipelineRun]:
        wanted = set(statuses) if statuses is not None else None
        runs = [
            r for r in self._runs.values()
            if (batch_id is None or r.batch_id == batch_id)
            and (wanted is None or r.status in wanted)
        ]
        runs.sort(key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in runs]
