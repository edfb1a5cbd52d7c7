# src/literacy/scorer.py — v1
"""Enliteracy scoring.

An item scores a quarter point for each layer it carries: a confirmed
rights record, lexicon terms, extracted entities and an embedding. The
batch score (0-100) blends four components:

  coverage      share of the five knowledge pools holding entities
  completeness  share of items with a confirmed (non-provisional) rights record
  density       relations per entity, capped at 100
  quality       mean item score

Components below their floor produce a gap with a suggested remedy.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

import networkx as nx

from enliterator.core.models import Item, ItemStatus
from enliterator.core.stages import StageName
from enliterator.graph.schema import DOCUMENT_LABEL, MENTIONS, POOL_LABELS

ITEM_LAYER_WEIGHT = 0.25

GAP_FLOORS: dict[str, tuple[float, str]] = {
    "coverage": (60.0, "Add sources that describe more kinds of knowledge (ideas, practices, history)"),
    "completeness": (70.0, "Confirm rights for quarantined or provisional items"),
    "density": (50.0, "Add material that relates entities to one another"),
    "quality": (60.0, "Review items missing terms, entities or embeddings"),
}


def item_score(item: Item) -> tuple[float, dict[str, bool]]:
    """Score one item from the layers earlier stages attached to it."""
    rights = item.record(StageName.RIGHTS).metadata.get("rights", {})
    layers = {
        "rights": bool(rights) and not rights.get("provisional", True),
        "terms": bool(item.record(StageName.LEXICON).metadata.get("terms")),
        "entities": bool(item.record(StageName.POOLS).metadata.get("entities")),
        "embedding": item.status(StageName.EMBEDDINGS) == ItemStatus.SUCCEEDED,
    }
    return round(ITEM_LAYER_WEIGHT * sum(layers.values()), 4), layers


@dataclass
class LiteracyReport:
    score: float
    components: dict[str, float]
    weights: dict[str, float]
    gaps: list[dict[str, Any]] = field(default_factory=list)
    entities: int = 0
    relations: int = 0
    items_scored: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def graph_components(graph: nx.MultiDiGraph) -> tuple[float, int, int]:
    """Return (coverage, entity count, relation count) for a batch graph."""
    pool_labels = set(POOL_LABELS.values())
    populated = {
        data.get("label") for _, data in graph.nodes(data=True)
        if data.get("label") in pool_labels
    }
    entities = sum(
        1 for _, data in graph.nodes(data=True) if data.get("label") not in (None, DOCUMENT_LABEL)
    )
    relations = sum(
        1 for _, _, data in graph.edges(data=True) if data.get("relation") != MENTIONS
    )
    coverage = 100.0 * len(populated) / len(pool_labels)
    return coverage, entities, relations


def score_batch(
    items: list[Item],
    item_scores: list[float],
    graph: nx.MultiDiGraph,
    weights: dict[str, float],
) -> LiteracyReport:
    """Compute the batch enliteracy score.

    Args:
        items: Every item of the batch (completeness denominator).
        item_scores: Scores of the items that reached literacy scoring.
        graph: The batch's knowledge graph snapshot.
        weights: Component weights keyed coverage/completeness/density/quality.
    """
    coverage, entities, relations = graph_components(graph)

    confirmed = 0
    for item in items:
        rights = item.record(StageName.RIGHTS).metadata.get("rights", {})
        if rights and not rights.get("provisional", True):
            confirmed += 1
    completeness = 100.0 * confirmed / len(items) if items else 0.0
    density = min(100.0, 100.0 * relations / entities) if entities else 0.0
    quality = 100.0 * sum(item_scores) / len(item_scores) if item_scores else 0.0

    components = {
        "coverage": round(coverage, 2),
        "completeness": round(completeness, 2),
        "density": round(density, 2),
        "quality": round(quality, 2),
    }
    score = round(sum(components[name] * weights[name] for name in components), 2)

    gaps = [
        {"component": name, "value": components[name], "floor": floor, "suggestion": hint}
        for name, (floor, hint) in GAP_FLOORS.items()
        if components[name] < floor
    ]
    return LiteracyReport(
        score=score,
        components=components,
        weights=dict(weights),
        gaps=gaps,
        entities=entities,
        relations=relations,
        items_scored=len(item_scores),
    )
