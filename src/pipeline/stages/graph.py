# src/pipeline/stages/graph.py — v1
"""Stage 5: knowledge graph assembly.

The schema transaction commits in before_stage(); every item then writes
its document node, entity nodes and edges in its own data transaction.
A write that reaches the store before the schema is committed raises
SchemaOrderError, which aborts the stage instead of failing one item.
"""

from __future__ import annotations

import logging
from typing import Any

from enliterator.core.models import Batch, GateResult, Item, Succeeded
from enliterator.core.stages import StageName
from enliterator.graph.schema import (
    DOCUMENT_LABEL,
    GRAPH_SCHEMA,
    MENTIONS,
    document_node_id,
    entity_node_id,
    pool_label,
)
from enliterator.lexicon.normalizer import normalize_key
from enliterator.pipeline.processor import BaseStageProcessor, ItemResultType

logger = logging.getLogger(__name__)


def document_properties(item: Item, batch: Batch) -> dict[str, Any]:
    """Properties of an item's Document node, including its rights record."""
    rights = item.record(StageName.RIGHTS).metadata.get("rights", {})
    return {
        "batch_id": batch.id,
        "item_id": item.id,
        "path": item.source_path,
        "media_type": item.media_type.value,
        "content_hash": item.content_hash or "",
        "license": rights.get("license", "unspecified"),
        "publishable": bool(rights.get("publishable", False)),
        "trainable": bool(rights.get("trainable", False)),
    }


class GraphProcessor(BaseStageProcessor):
    """Knowledge graph assembly."""

    @property
    def stage(self) -> StageName:
        return StageName.GRAPH

    @property
    def graph(self):
        return self.services.graph

    async def before_stage(self, batch: Batch, population: list[Item]) -> None:
        await self.apply_schema()

    async def apply_schema(self) -> None:
        await self.graph.apply_schema(GRAPH_SCHEMA)
        logger.info("Graph schema committed (%d labels)", len(GRAPH_SCHEMA.labels))

    async def process_item(self, item: Item, batch: Batch) -> ItemResultType:
        pools = item.record(StageName.POOLS).metadata
        doc_id = document_node_id(item.id)

        entity_ids: dict[str, str] = {}
        edges = 0
        async with self.graph.data_transaction() as tx:
            tx.upsert_node(doc_id, DOCUMENT_LABEL, document_properties(item, batch))

            for entity in pools.get("entities", []):
                key = normalize_key(str(entity.get("key") or entity.get("label", "")))
                if not key:
                    continue
                node_id = entity_node_id(batch.id, key)
                tx.upsert_node(node_id, pool_label(str(entity.get("pool_type", "idea"))), {
                    "batch_id": batch.id,
                    "key": key,
                    "name": str(entity.get("label", key)),
                    "pool_type": str(entity.get("pool_type", "idea")),
                })
                tx.upsert_edge(doc_id, MENTIONS, node_id, {"item_id": item.id})
                entity_ids[key] = node_id
                edges += 1

            for relation in pools.get("relations", []):
                source = entity_ids.get(normalize_key(str(relation.get("source", ""))))
                target = entity_ids.get(normalize_key(str(relation.get("target", ""))))
                if source is None or target is None or source == target:
                    continue
                tx.upsert_edge(source, str(relation.get("verb", "connects_to")), target,
                               {"item_id": item.id})
                edges += 1

        return Succeeded(metadata={
            "document_node": doc_id,
            "entity_nodes": len(entity_ids),
            "edges": edges,
        })

    async def after_stage(
        self, batch: Batch, population: list[Item], results: dict[str, ItemResultType]
    ) -> GateResult | None:
        batch.artifacts["graph"] = {
            "provider": self.graph.provider_name,
            "nodes": await self.graph.node_count(batch.id),
            "edges": await self.graph.edge_count(batch.id),
        }
        return None
