# src/extraction/entity_extractor.py — v1
"""Heuristic entity and relation extraction for the pools stage.

Entities are the item's lexicon terms that actually occur in its content,
each assigned to a knowledge pool from its term type. Relations link
entities mentioned on the same line with a verb chosen from the pool pair.
"""

from __future__ import annotations

import re
from typing import Any

from enliterator.extraction.base_capability import (
    BaseExtractionCapability,
    ExtractionResponse,
    FatalError,
)
from enliterator.lexicon.normalizer import normalize_key

POOL_BY_TERM_TYPE: dict[str, str] = {
    "concept": "idea",
    "identifier": "manifest",
    "setting": "practical",
    "path": "manifest",
}

# (source pool, target pool) -> verb
VERBS: dict[tuple[str, str], str] = {
    ("idea", "manifest"): "embodies",
    ("idea", "practical"): "codifies",
    ("manifest", "experience"): "elicits",
    ("evolutionary", "manifest"): "version_of",
    ("evolutionary", "idea"): "refines",
    ("practical", "experience"): "validated_by",
}
DEFAULT_VERB = "connects_to"

_EVOLUTION = re.compile(r"\b(?:v\d+(?:\.\d+)*|version \d+|changelog|deprecated)\b", re.I)
_EXPERIENCE = re.compile(r"\b(?:I|we) (?:felt|found|noticed|experienced|learned)\b", re.I)


def verb_for(source_pool: str, target_pool: str) -> str:
    return VERBS.get((source_pool, target_pool), DEFAULT_VERB)


class EntityExtractorCapability(BaseExtractionCapability):
    """Lexicon-guided entity and relation extractor."""

    @property
    def name(self) -> str:
        return "entity_extractor"

    async def extract(self, content: str, context: dict[str, Any]) -> ExtractionResponse:
        if not content:
            raise FatalError("No content captured for entity extraction")

        terms: list[dict[str, Any]] = context.get("terms") or []
        lowered = content.lower()
        entities: list[dict[str, Any]] = []
        seen: set[str] = set()

        for term in terms:
            label = str(term.get("canonical", ""))
            key = normalize_key(label)
            if not key or key in seen:
                continue
            forms = [label, *term.get("surface_forms", [])]
            if not any(f and f.lower() in lowered for f in forms) and term.get("term_type") != "path":
                continue
            seen.add(key)
            entities.append({
                "key": key,
                "label": label,
                "pool_type": POOL_BY_TERM_TYPE.get(str(term.get("term_type")), "idea"),
                "forms": [f.lower() for f in forms if f],
            })

        for match in _EVOLUTION.finditer(content):
            key = normalize_key(match.group(0))
            if key not in seen:
                seen.add(key)
                entities.append({"key": key, "label": match.group(0), "pool_type": "evolutionary",
                                 "forms": [match.group(0).lower()]})
        for match in _EXPERIENCE.finditer(content):
            line = _line_at(content, match.start()).strip()[:120]
            key = normalize_key(line)
            if key and key not in seen:
                seen.add(key)
                entities.append({"key": key, "label": line, "pool_type": "experience",
                                 "forms": [line.lower()]})

        relations = _relations(content, entities)
        for e in entities:
            e.pop("forms")

        return ExtractionResponse(
            result={"entities": entities, "relations": relations},
            confidence=_confidence(entities, relations),
        )


def _line_at(content: str, pos: int) -> str:
    start = content.rfind("\n", 0, pos) + 1
    end = content.find("\n", pos)
    return content[start:] if end == -1 else content[start:end]


def _relations(content: str, entities: list[dict[str, Any]]) -> list[dict[str, str]]:
    relations: list[dict[str, str]] = []
    seen: set[tuple[str, str]] = set()
    for line in content.lower().splitlines():
        present = [e for e in entities if any(f in line for f in e["forms"])]
        for i, src in enumerate(present):
            for tgt in present[i + 1:]:
                if (src["key"], tgt["key"]) in seen or src["key"] == tgt["key"]:
                    continue
                seen.add((src["key"], tgt["key"]))
                relations.append({
                    "source": src["key"],
                    "target": tgt["key"],
                    "verb": verb_for(src["pool_type"], tgt["pool_type"]),
                })
    return relations


def _confidence(entities: list[dict[str, Any]], relations: list[dict[str, str]]) -> float:
    if not entities:
        return 0.3
    return round(min(0.95, 0.6 + 0.05 * len(entities) + 0.02 * len(relations)), 2)
