# src/graph/schema.py — v1
"""Knowledge graph schema and node id conventions.

Every item becomes a Document node; extracted entities become nodes
labelled by their knowledge pool and shared across the items of a batch.
"""

from __future__ import annotations

from enliterator.graph.store.base_graph_store import GraphSchema

DOCUMENT_LABEL = "Document"

POOL_LABELS: dict[str, str] = {
    "idea": "Idea",
    "manifest": "Manifest",
    "experience": "Experience",
    "practical": "Practical",
    "evolutionary": "Evolutionary",
}

GRAPH_SCHEMA = GraphSchema(
    labels=(DOCUMENT_LABEL, *POOL_LABELS.values()),
    indexes=(
        (DOCUMENT_LABEL, "batch_id"),
        (DOCUMENT_LABEL, "content_hash"),
        *((label, "batch_id") for label in POOL_LABELS.values()),
    ),
)

# Edge from a document to each entity it mentions.
MENTIONS = "mentions"


def document_node_id(item_id: str) -> str:
    return f"doc:{item_id}"


def entity_node_id(batch_id: str, key: str) -> str:
    return f"ent:{batch_id}:{key}"


def pool_label(pool_type: str) -> str:
    return POOL_LABELS.get(pool_type.lower(), "Idea")
