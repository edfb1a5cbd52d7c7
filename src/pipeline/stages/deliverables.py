# src/pipeline/stages/deliverables.py — v1
"""Stage 8: export artifacts.

Publishable items succeed; the rest are withheld (skipped, still
contributing so the fine-tune stage can consider them).
"""

from __future__ import annotations

from enliterator.core.models import Batch, GateResult, Item, ItemStatus, Skipped, Succeeded
from enliterator.core.stages import StageName
from enliterator.deliverables.exporter import DeliverableExporter
from enliterator.graph.exporter_factory import create_exporters
from enliterator.pipeline.processor import BaseStageProcessor, ItemResultType


class DeliverablesProcessor(BaseStageProcessor):
    """Export artifacts."""

    @property
    def stage(self) -> StageName:
        return StageName.DELIVERABLES

    async def process_item(self, item: Item, batch: Batch) -> ItemResultType:
        rights = item.record(StageName.RIGHTS).metadata.get("rights", {})
        if not rights.get("publishable", False):
            return Skipped(reason="not publishable", contributed=True)
        return Succeeded(metadata={"published": True, "license": rights.get("license", "unspecified")})

    async def after_stage(
        self, batch: Batch, population: list[Item], results: dict[str, ItemResultType]
    ) -> GateResult | None:
        ids = {i.id for i in population}
        items = [i for i in await self.store.list_items(batch.id) if i.id in ids]
        published = [
            {
                "item_id": i.id,
                "path": i.source_path,
                "license": i.record(self.stage).metadata.get("license", "unspecified"),
            }
            for i in items
            if i.status(self.stage) == ItemStatus.SUCCEEDED
        ]
        exporter = DeliverableExporter(
            self.settings.output_root, create_exporters(self.settings.deliverable_formats_list)
        )
        graph = await self.services.graph.to_networkx(batch.id)
        manifest = await exporter.export(batch, graph, published, len(items) - len(published))
        batch.artifacts["deliverables"] = {
            "output_dir": manifest["output_dir"],
            "files": manifest["files"],
            "published_items": manifest["published_items"],
            "withheld_items": manifest["withheld_items"],
        }
        return None
