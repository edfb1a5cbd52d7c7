# src/pipeline/stages/pools.py — v1
"""Stage 4: pool extraction (entities and relations).

The batch lexicon is passed as context so entity labels use canonical
forms and every item agrees on a shared term's type, hence its pool.
Items without text are skipped but still flow to graph assembly, which
gives them a document node.
"""

from __future__ import annotations

from collections import Counter

from enliterator.core.models import Batch, GateResult, Item, ItemStatus, Skipped
from enliterator.core.stages import StageName
from enliterator.lexicon.normalizer import normalize_key
from enliterator.pipeline.processor import BaseStageProcessor, ItemResultType
from enliterator.pipeline.stages.lexicon import item_terms

CAPABILITY = "entity_extractor"


class PoolsProcessor(BaseStageProcessor):
    """Entity and relation extraction."""

    @property
    def stage(self) -> StageName:
        return StageName.POOLS

    async def process_item(self, item: Item, batch: Batch) -> ItemResultType:
        if not item.content:
            return Skipped(reason="no text content", contributed=True,
                           metadata={"entities": [], "relations": []})

        lexicon = batch.artifacts.get("lexicon", {})
        terms = []
        for term in item_terms(item):
            entry = lexicon.get(normalize_key(str(term.get("canonical", ""))))
            if entry:
                term = {**term, "canonical": entry["canonical"],
                        "term_type": entry.get("term_type", term.get("term_type"))}
            terms.append(term)

        context = {"path": item.source_path, "terms": terms}
        response, attempts = await self.extract(CAPABILITY, item.content, context)
        entities = list(response.result.get("entities", []))
        relations = list(response.result.get("relations", []))
        return self.classify(
            response.confidence,
            {"entities": entities, "relations": relations, "capability_attempts": attempts},
        )

    async def after_stage(
        self, batch: Batch, population: list[Item], results: dict[str, ItemResultType]
    ) -> GateResult | None:
        by_pool: Counter[str] = Counter()
        relations = 0
        for item in await self.store.list_items(batch.id, self.stage, [ItemStatus.SUCCEEDED]):
            metadata = item.record(self.stage).metadata
            by_pool.update(str(e.get("pool_type", "idea")) for e in metadata.get("entities", []))
            relations += len(metadata.get("relations", []))
        batch.artifacts["pools"] = {"entities_by_pool": dict(by_pool), "relations": relations}
        return None
