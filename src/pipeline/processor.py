# src/pipeline/processor.py — v1
"""Generic stage processor.

One invocation of a stage:

  1. Load the stage population (items the previous stage let through) and
     select the eligible ones (this stage's status not_started/pending).
  2. before_stage(): batch-level preparation (e.g. graph schema).
  3. Process eligible items concurrently, bounded by a semaphore. Each
     item's exception is captured as a Failed result; StageInvariantError
     is the only exception that escapes, and it aborts the invocation.
  4. after_stage(): batch-level post-processing once every item has
     reported (dedup passes, exports, quality gate).
  5. Recount statuses over the whole population and return a StageOutcome.

Subclasses implement process_item() and optionally the two hooks.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from enliterator.config.settings import Settings
from enliterator.core.errors import StageInvariantError
from enliterator.core.models import (
    OPEN_ITEM_STATUSES,
    Batch,
    Failed,
    GateResult,
    Item,
    ItemStatus,
    PipelineRun,
    Quarantined,
    Skipped,
    StageOutcome,
    StageRecord,
    Succeeded,
    result_metadata,
    result_status,
    utcnow,
)
from enliterator.core.stages import StageName, previous_stage
from enliterator.embeddings.base_embedder import BaseEmbedder
from enliterator.extraction.base_capability import (
    BaseExtractionCapability,
    ExtractionResponse,
    FatalError,
)
from enliterator.extraction.retry import RetryExhausted, RetryPolicy, with_retry
from enliterator.graph.store.base_graph_store import BaseGraphStore
from enliterator.logging.context import set_item_context, set_stage_context
from enliterator.storage.base_store import BasePipelineStore

logger = logging.getLogger(__name__)

ItemResultType = Succeeded | Quarantined | Failed | Skipped
ProgressCallback = Callable[[], Awaitable[None]]


@dataclass
class StageServices:
    """Collaborators shared by every stage processor."""

    settings: Settings
    store: BasePipelineStore
    graph: BaseGraphStore
    embedder: BaseEmbedder
    capabilities: dict[str, BaseExtractionCapability] = field(default_factory=dict)
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep


def in_population(item: Item, stage: StageName) -> bool:
    """True if the item flows into ``stage`` from the stage before it."""
    prev = previous_stage(stage)
    if prev is None:
        return True
    record = item.record(prev)
    return record.status == ItemStatus.SUCCEEDED or record.contributed


class BaseStageProcessor(ABC):
    """Runs one pipeline stage over a batch."""

    # Set True when process_item() mutates Item fields beyond the stage record.
    writes_item_fields = False

    def __init__(self, services: StageServices) -> None:
        self.services = services
        self.settings = services.settings
        self.store = services.store
        self.retry_policy = RetryPolicy.from_settings(services.settings)

    @property
    @abstractmethod
    def stage(self) -> StageName:
        """Stage this processor implements."""

    @abstractmethod
    async def process_item(self, item: Item, batch: Batch) -> ItemResultType:
        """Transform one item and classify the outcome."""

    async def before_stage(self, batch: Batch, population: list[Item]) -> None:
        """Batch-level preparation; exceptions abort the stage."""

    async def after_stage(
        self, batch: Batch, population: list[Item], results: dict[str, ItemResultType]
    ) -> GateResult | None:
        """Batch-level post-processing; may rewrite item records and batch artifacts."""
        return None

    async def after_approval(self, batch: Batch, item_ids: list[str]) -> None:
        """Follow-up once an operator approved quarantined items of this stage."""

    # --- Population ---

    async def population(self, batch_id: str) -> list[Item]:
        items = await self.store.list_items(batch_id)
        return [i for i in items if in_population(i, self.stage)]

    def eligible(self, population: list[Item]) -> list[Item]:
        return [i for i in population if i.status(self.stage) in OPEN_ITEM_STATUSES]

    # --- Execution ---

    async def run(
        self,
        batch: Batch,
        run: PipelineRun | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> StageOutcome:
        """Execute the stage for ``batch`` and return the aggregate outcome.

        Raises:
            StageInvariantError: If a cross-stage invariant is violated.
        """
        set_stage_context(self.stage.value)
        started = time.monotonic()

        population = await self.population(batch.id)
        eligible = self.eligible(population)
        logger.info(
            "Stage %s: %d items in population, %d eligible",
            self.stage.value, len(population), len(eligible),
        )

        await self.before_stage(batch, population)

        for item in eligible:
            record = item.record(self.stage)
            record.status = ItemStatus.IN_PROGRESS
            record.attempts += 1
            record.updated_at = utcnow()
            await self.store.update_item_stage(item.id, self.stage, record)

        semaphore = asyncio.Semaphore(self.settings.stage_concurrency)
        gathered = await asyncio.gather(
            *(self._process_one(item, batch, semaphore, on_progress) for item in eligible),
            return_exceptions=True,
        )
        set_item_context(None)

        results: dict[str, ItemResultType] = {}
        for item, outcome in zip(eligible, gathered):
            if isinstance(outcome, BaseException):
                # Only invariant violations (and cancellation) reach this point.
                raise outcome
            results[item.id] = outcome

        gate = await self.after_stage(batch, population, results)
        outcome = await self._count(batch.id, population, len(eligible), started, gate)
        logger.info(
            "Stage %s done: %s (%.2fs)",
            self.stage.value, outcome.counts(), outcome.duration_s,
            extra={"data": outcome.counts()},
        )
        return outcome

    async def _process_one(
        self,
        item: Item,
        batch: Batch,
        semaphore: asyncio.Semaphore,
        on_progress: ProgressCallback | None,
    ) -> ItemResultType:
        async with semaphore:
            set_item_context(item.id)
            try:
                result = await self.process_item(item, batch)
            except StageInvariantError:
                raise
            except RetryExhausted as e:
                logger.warning("Item %s failed after %d attempts: %s", item.label, e.attempts, e.last_error)
                result = Failed(error=str(e.last_error), error_type="transient", attempts=e.attempts)
            except FatalError as e:
                logger.warning("Item %s failed: %s", item.label, e)
                result = Failed(error=str(e), error_type="fatal")
            except Exception as e:
                logger.error("Item %s raised %s: %s", item.label, type(e).__name__, e, exc_info=True)
                result = Failed(error=f"{type(e).__name__}: {e}", error_type="unexpected")

            await self.persist(item, result)
            if on_progress is not None:
                await on_progress()
            return result

    async def persist(self, item: Item, result: ItemResultType) -> None:
        """Write the item's record for this stage."""
        record = item.record(self.stage)
        carried = {k: v for k, v in record.metadata.items() if k in ("previous_errors", "manual_approval")}
        record.status = result_status(result)
        record.metadata = {**carried, **result_metadata(result)}
        record.updated_at = utcnow()
        if self.writes_item_fields:
            await self.store.save_item(item)
        else:
            await self.store.update_item_stage(item.id, self.stage, record)

    async def _count(
        self,
        batch_id: str,
        population: list[Item],
        attempted: int,
        started: float,
        gate: GateResult | None,
    ) -> StageOutcome:
        ids = {i.id for i in population}
        counts = {s: 0 for s in ItemStatus}
        for item in await self.store.list_items(batch_id):
            if item.id in ids:
                counts[item.status(self.stage)] += 1
        return StageOutcome(
            stage=self.stage,
            total=len(population),
            succeeded=counts[ItemStatus.SUCCEEDED],
            quarantined=counts[ItemStatus.QUARANTINED],
            failed=counts[ItemStatus.FAILED],
            skipped=counts[ItemStatus.SKIPPED],
            attempted=attempted,
            duration_s=round(time.monotonic() - started, 3),
            gate=gate,
        )

    # --- Helpers for subclasses ---

    def threshold(self) -> float:
        return self.settings.confidence_threshold_for(self.stage)

    def classify(
        self,
        confidence: float,
        metadata: dict[str, Any],
        threshold: float | None = None,
        reason: str | None = None,
    ) -> Succeeded | Quarantined:
        """Inclusive rule: confidence >= threshold succeeds, otherwise quarantined."""
        limit = self.threshold() if threshold is None else threshold
        if confidence >= limit:
            return Succeeded(confidence=confidence, metadata=metadata)
        return Quarantined(
            confidence=confidence,
            reason=reason or f"confidence {confidence:.2f} below threshold {limit:.2f}",
            metadata=metadata,
        )

    async def extract(
        self, capability_name: str, content: str, context: dict[str, Any]
    ) -> tuple[ExtractionResponse, int]:
        """Call a capability with transient-error retry.

        Returns:
            Tuple of (response, attempts used).
        """
        capability = self.services.capabilities.get(capability_name)
        if capability is None:
            raise StageInvariantError(f"No extraction capability registered as {capability_name!r}")
        return await with_retry(
            capability.extract,
            content,
            context,
            capability=capability.name,
            policy=self.retry_policy,
            sleep=self.services.sleep,
        )

    async def rewrite_record(self, item_id: str, result: ItemResultType) -> None:
        """Replace an item's record after the fact (used by dedup passes)."""
        item = await self.store.get_item(item_id)
        await self.persist(item, result)
