# src/pipeline/stages/embeddings.py — v1
"""Stage 6: vector representations.

Each document node gets an embedding of its text (or, for items without
text, of the names of the entities it mentions). Entity nodes of the
batch are embedded afterwards in one call.
"""

from __future__ import annotations

import logging

from enliterator.core.models import Batch, GateResult, Item, Skipped, Succeeded
from enliterator.core.stages import StageName
from enliterator.graph.schema import DOCUMENT_LABEL, GRAPH_SCHEMA, document_node_id
from enliterator.pipeline.processor import BaseStageProcessor, ItemResultType

logger = logging.getLogger(__name__)

MAX_EMBED_CHARS = 8000


class EmbeddingsProcessor(BaseStageProcessor):
    """Vector representations of documents and entities."""

    @property
    def stage(self) -> StageName:
        return StageName.EMBEDDINGS

    @property
    def embedder(self):
        return self.services.embedder

    async def before_stage(self, batch: Batch, population: list[Item]) -> None:
        # Idempotent; a fresh process has no schema committed yet.
        if not self.services.graph.schema_committed:
            await self.services.graph.apply_schema(GRAPH_SCHEMA)

    async def process_item(self, item: Item, batch: Batch) -> ItemResultType:
        if item.content.strip():
            text, source = item.content[:MAX_EMBED_CHARS], "content"
        else:
            labels = [
                str(e.get("label", ""))
                for e in item.record(StageName.POOLS).metadata.get("entities", [])
            ]
            text, source = " ".join(l for l in labels if l), "entities"
        if not text:
            return Skipped(reason="no text to embed", contributed=True)

        vectors = await self.embedder.embed_texts([text])
        async with self.services.graph.data_transaction() as tx:
            tx.set_properties(document_node_id(item.id), {
                "embedding": vectors[0],
                "embedding_model": self.embedder.model_name,
            })
        return Succeeded(metadata={
            "text_source": source,
            "dimensions": len(vectors[0]),
            "model": self.embedder.model_name,
        })

    async def after_stage(
        self, batch: Batch, population: list[Item], results: dict[str, ItemResultType]
    ) -> GateResult | None:
        graph = await self.services.graph.to_networkx(batch.id)
        pending = [
            (node_id, str(data.get("name", "")))
            for node_id, data in graph.nodes(data=True)
            if data.get("label") != DOCUMENT_LABEL and "embedding" not in data and data.get("name")
        ]
        if pending:
            vectors = await self.embedder.embed_texts([name for _, name in pending])
            async with self.services.graph.data_transaction() as tx:
                for (node_id, _), vector in zip(pending, vectors):
                    tx.set_properties(node_id, {
                        "embedding": vector,
                        "embedding_model": self.embedder.model_name,
                    })

        documents = sum(
            1 for _, data in graph.nodes(data=True)
            if data.get("label") == DOCUMENT_LABEL and "embedding" in data
        )
        batch.artifacts["embeddings"] = {
            "provider": self.embedder.provider_name,
            "model": self.embedder.model_name,
            "dimensions": self.embedder.dimensions,
            "documents": documents,
            "entities_embedded": len(pending),
        }
        logger.info("Embedded %d entity nodes", len(pending))
        return None
