# src/pipeline/stages/literacy.py — v1
"""Stage 7: literacy scoring and gap analysis.

Per item: a layer score classified against the stage threshold
(STAGE_CONFIDENCE_THRESHOLDS["literacy"], else LITERACY_ITEM_THRESHOLD).
Per batch: the enliteracy score, which gates advancement. A score below
LITERACY_MIN_SCORE fails the gate and the stage needs review.
"""

from __future__ import annotations

import logging

from enliterator.core.models import Batch, GateResult, Item, ItemStatus
from enliterator.core.stages import StageName
from enliterator.literacy.scorer import item_score, score_batch
from enliterator.pipeline.processor import BaseStageProcessor, ItemResultType

logger = logging.getLogger(__name__)

GATE_NAME = "literacy_score"


class LiteracyProcessor(BaseStageProcessor):
    """Literacy scoring and gap analysis."""

    @property
    def stage(self) -> StageName:
        return StageName.LITERACY

    async def process_item(self, item: Item, batch: Batch) -> ItemResultType:
        score, layers = item_score(item)
        missing = [name for name, present in layers.items() if not present]
        reason = f"missing layers: {', '.join(missing)}" if missing else None
        return self.classify(score, {"item_score": score, "layers": layers}, reason=reason)

    async def after_stage(
        self, batch: Batch, population: list[Item], results: dict[str, ItemResultType]
    ) -> GateResult | None:
        items = await self.store.list_items(batch.id)
        ids = {i.id for i in population}
        scores = [
            float(i.record(self.stage).metadata.get("item_score", 0.0))
            for i in items
            if i.id in ids and i.status(self.stage) in (ItemStatus.SUCCEEDED, ItemStatus.QUARANTINED)
        ]
        graph = await self.services.graph.to_networkx(batch.id)
        weights = {
            "coverage": self.settings.literacy_w_coverage,
            "completeness": self.settings.literacy_w_completeness,
            "density": self.settings.literacy_w_density,
            "quality": self.settings.literacy_w_quality,
        }
        report = score_batch(items, scores, graph, weights)
        batch.artifacts["literacy"] = report.to_dict()

        minimum = self.settings.literacy_min_score
        passed = report.score >= minimum
        logger.info(
            "Enliteracy score %.2f (minimum %.2f), %d gaps",
            report.score, minimum, len(report.gaps),
            extra={"data": report.components},
        )
        return GateResult(
            name=GATE_NAME,
            passed=passed,
            score=report.score,
            threshold=minimum,
            message="" if passed else f"Enliteracy score {report.score:.2f} below {minimum:.2f}",
        )
