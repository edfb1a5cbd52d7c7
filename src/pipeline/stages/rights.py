# src/pipeline/stages/rights.py — v1
"""Stage 2: rights and provenance triage.

Every item that does not fail carries a rights record. Below the
confidence threshold the record is provisional (nothing publishable or
trainable) and the item is quarantined for review.
"""

from __future__ import annotations

from typing import Any

from enliterator.core.models import Batch, Item
from enliterator.core.stages import StageName
from enliterator.pipeline.processor import BaseStageProcessor, ItemResultType

CAPABILITY = "rights_inference"


def rights_record(result: dict[str, Any], confidence: float, provisional: bool) -> dict[str, Any]:
    record = {
        "license": result.get("license", "unspecified"),
        "consent": result.get("consent", "unknown"),
        "owner": result.get("owner", "unknown"),
        "collection_method": result.get("collection_method", "automated_ingestion"),
        "source_type": result.get("source_type", "inferred"),
        "publishable": bool(result.get("publishable", False)),
        "trainable": bool(result.get("trainable", False)),
        "confidence": confidence,
        "provisional": provisional,
    }
    if provisional:
        record["publishable"] = False
        record["trainable"] = False
    return record


class RightsProcessor(BaseStageProcessor):
    """Rights inference and quarantine."""

    @property
    def stage(self) -> StageName:
        return StageName.RIGHTS

    async def process_item(self, item: Item, batch: Batch) -> ItemResultType:
        context = {
            "path": item.source_path,
            "media_type": item.media_type.value,
            "metadata": item.metadata,
            "source_type": batch.source_type,
        }
        response, attempts = await self.extract(CAPABILITY, item.content_sample, context)
        provisional = response.confidence < self.threshold()
        metadata = {
            "rights": rights_record(response.result, response.confidence, provisional),
            "capability_attempts": attempts,
        }
        if "signals" in response.result:
            metadata["signals"] = response.result["signals"]
        return self.classify(response.confidence, metadata)
