# src/pipeline/stages/fine_tune.py — v1
"""Stage 9: fine-tuning dataset.

Runs only for batches whose enliteracy score met the minimum; otherwise
every item is skipped with reason ``insufficient_literacy_score``.
"""

from __future__ import annotations

import logging

from enliterator.core.models import Batch, GateResult, Item, ItemStatus, Skipped, Succeeded
from enliterator.core.stages import StageName
from enliterator.deliverables.exporter import batch_output_dir
from enliterator.fine_tune.dataset_builder import build_examples, write_jsonl
from enliterator.pipeline.processor import BaseStageProcessor, ItemResultType

logger = logging.getLogger(__name__)

INSUFFICIENT_SCORE = "insufficient_literacy_score"


class FineTuneProcessor(BaseStageProcessor):
    """Fine-tuning dataset."""

    @property
    def stage(self) -> StageName:
        return StageName.FINE_TUNE

    def literacy_sufficient(self, batch: Batch) -> bool:
        score = batch.artifacts.get("literacy", {}).get("score")
        return score is not None and score >= self.settings.literacy_min_score

    async def process_item(self, item: Item, batch: Batch) -> ItemResultType:
        if not self.literacy_sufficient(batch):
            return Skipped(reason=INSUFFICIENT_SCORE)
        rights = item.record(StageName.RIGHTS).metadata.get("rights", {})
        if not rights.get("trainable", False):
            return Skipped(reason="not trainable")

        examples = build_examples(item, batch.artifacts.get("lexicon", {}))
        if not examples:
            return Skipped(reason="no training examples")
        return Succeeded(metadata={"examples": examples, "example_count": len(examples)})

    async def after_stage(
        self, batch: Batch, population: list[Item], results: dict[str, ItemResultType]
    ) -> GateResult | None:
        if not self.literacy_sufficient(batch):
            batch.artifacts["fine_tune"] = {"skipped": INSUFFICIENT_SCORE}
            logger.info("Fine-tune dataset not built: %s", INSUFFICIENT_SCORE)
            return None

        ids = {i.id for i in population}
        examples = []
        contributing = 0
        for item in sorted(await self.store.list_items(batch.id), key=lambda i: i.ordinal):
            if item.id in ids and item.status(self.stage) == ItemStatus.SUCCEEDED:
                examples.extend(item.record(self.stage).metadata.get("examples", []))
                contributing += 1

        path = write_jsonl(
            examples, batch_output_dir(self.settings.output_root, batch.id) / "fine_tune.jsonl"
        )
        batch.artifacts["fine_tune"] = {
            "path": str(path),
            "examples": len(examples),
            "items": contributing,
        }
        logger.info("Fine-tune dataset: %d examples from %d items", len(examples), contributing)
        return None
