# src/fine_tune/dataset_builder.py — v1
"""Chat-format training examples derived from one item's knowledge.

Three kinds of example per item:
  - term mappings: a surface form and its canonical lexicon term
  - entity descriptions: what an entity is and where it appears
  - relation narrations: one sentence per extracted relation
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from enliterator.core.models import Item
from enliterator.core.stages import StageName
from enliterator.lexicon.normalizer import normalize_key

SYSTEM_PROMPT = "You answer questions about this knowledge collection using its canonical vocabulary."

MAX_EXAMPLES_PER_ITEM = 40


def chat_example(question: str, answer: str, kind: str, item: Item) -> dict[str, Any]:
    return {
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": question},
            {"role": "assistant", "content": answer},
        ],
        "metadata": {"kind": kind, "item_id": item.id, "source": item.source_path},
    }


def _phrase(verb: str) -> str:
    return verb.replace("_", " ")


def build_examples(item: Item, lexicon: dict[str, dict[str, Any]]) -> list[dict[str, Any]]:
    """Build the training examples one item contributes."""
    examples: list[dict[str, Any]] = []
    source = item.source_path or "this collection"

    for term in item.record(StageName.LEXICON).metadata.get("terms", []):
        entry = lexicon.get(normalize_key(str(term.get("canonical", ""))))
        if not entry:
            continue
        for form in entry.get("surface_forms", []):
            if form != entry["canonical"]:
                examples.append(chat_example(
                    f"What is the canonical term for '{form}'?",
                    f"The canonical term is '{entry['canonical']}'.",
                    "term_mapping", item,
                ))

    pools = item.record(StageName.POOLS).metadata
    names = {}
    for entity in pools.get("entities", []):
        name = str(entity.get("label", entity.get("key", "")))
        if not name:
            continue
        names[normalize_key(str(entity.get("key", name)))] = name
        pool = str(entity.get("pool_type", "idea"))
        examples.append(chat_example(
            f"What is {name}?",
            f"{name} is a {pool} entity described in {source}.",
            "entity_description", item,
        ))

    for relation in pools.get("relations", []):
        src = names.get(normalize_key(str(relation.get("source", ""))))
        tgt = names.get(normalize_key(str(relation.get("target", ""))))
        if not src or not tgt:
            continue
        examples.append(chat_example(
            f"How does {src} relate to {tgt}?",
            f"{src} {_phrase(str(relation.get('verb', 'connects_to')))} {tgt}.",
            "relation_narration", item,
        ))

    return examples[:MAX_EXAMPLES_PER_ITEM]


def write_jsonl(examples: list[dict[str, Any]], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        for example in examples:
            fh.write(json.dumps(example, ensure_ascii=False) + "\n")
    return path
