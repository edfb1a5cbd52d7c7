# src/pipeline/stages/lexicon.py — v1
"""Stage 3: lexicon bootstrap.

Items report their terms independently. Once all have reported, a
deduplication pass in ordinal order builds the batch lexicon; an item
whose terms were all contributed by earlier items is re-marked skipped
(not contributed) with ``duplicate_of`` pointing at those items.
"""

from __future__ import annotations

import logging
from typing import Any

from enliterator.core.models import Batch, GateResult, Item, ItemStatus, Skipped
from enliterator.core.stages import StageName
from enliterator.lexicon.normalizer import build_lexicon
from enliterator.pipeline.processor import BaseStageProcessor, ItemResultType

logger = logging.getLogger(__name__)

CAPABILITY = "term_extractor"


def item_terms(item: Item) -> list[dict[str, Any]]:
    """Terms the lexicon stage recorded for an item."""
    return list(item.record(StageName.LEXICON).metadata.get("terms", []))


class LexiconProcessor(BaseStageProcessor):
    """Term extraction and canonical forms."""

    @property
    def stage(self) -> StageName:
        return StageName.LEXICON

    async def process_item(self, item: Item, batch: Batch) -> ItemResultType:
        context = {"path": item.source_path, "media_type": item.media_type.value}
        response, attempts = await self.extract(CAPABILITY, item.content, context)
        terms = list(response.result.get("terms", []))
        return self.classify(
            response.confidence,
            {"terms": terms, "term_count": len(terms), "capability_attempts": attempts},
        )

    async def after_stage(
        self, batch: Batch, population: list[Item], results: dict[str, ItemResultType]
    ) -> GateResult | None:
        await self.deduplicate(batch, population, list(results))
        return None

    async def after_approval(self, batch: Batch, item_ids: list[str]) -> None:
        await self.deduplicate(batch, await self.population(batch.id), item_ids)

    async def deduplicate(self, batch: Batch, population: list[Item], fresh_ids: list[str]) -> None:
        """Rebuild the batch lexicon and re-mark fresh items whose terms all exist.

        Items outside ``fresh_ids`` were accepted earlier and keep precedence;
        within each group ordinal order applies.
        """
        fresh = set(fresh_ids)
        current = {i.id: i for i in await self.store.list_items(batch.id)}
        ordered = [current[i.id] for i in population if i.id not in fresh] + [
            current[i.id] for i in population if i.id in fresh
        ]

        contributions = []
        for item in ordered:
            record = item.record(self.stage)
            if record.status == ItemStatus.SUCCEEDED or (
                record.status == ItemStatus.SKIPPED and record.metadata.get("duplicate_of")
            ):
                contributions.append((item.id, item_terms(item)))

        lexicon, verdicts = build_lexicon(contributions)

        flipped = 0
        for item_id in fresh_ids:
            verdict = verdicts.get(item_id)
            if verdict is None or not verdict.all_duplicates:
                continue
            if current[item_id].status(self.stage) != ItemStatus.SUCCEEDED:
                continue
            terms = item_terms(current[item_id])
            await self.rewrite_record(item_id, Skipped(
                reason=f"All {len(terms)} terms were duplicates",
                contributed=False,
                metadata={
                    "terms": terms,
                    "term_count": len(terms),
                    "duplicate_of": verdict.duplicate_of,
                },
            ))
            flipped += 1

        batch.artifacts["lexicon"] = {key: lexicon[key].to_dict() for key in sorted(lexicon)}
        logger.info(
            "Lexicon: %d canonical terms, %d items skipped as duplicates", len(lexicon), flipped
        )
