# tests/unit/fine_tune/test_dataset_builder.py — v1
"""Tests for fine_tune/dataset_builder.py: chat examples per item."""

from __future__ import annotations

import json

from enliterator.core.models import Item, StageRecord
from enliterator.core.stages import StageName
from enliterator.fine_tune.dataset_builder import (
    MAX_EXAMPLES_PER_ITEM,
    build_examples,
    write_jsonl,
)

LEXICON = {
    "compost": {"canonical": "Compost", "surface_forms": ["Compost", "compost heap"]},
}


def knowledge_item(entities=None, relations=None) -> Item:
    item = Item(batch_id="b", source_path="notes/soil.md")
    item.stages[StageName.LEXICON] = StageRecord(metadata={"terms": [{"canonical": "compost"}]})
    item.stages[StageName.POOLS] = StageRecord(metadata={
        "entities": entities if entities is not None else [
            {"key": "compost", "label": "Compost", "pool_type": "practical"},
            {"key": "soil", "label": "Soil", "pool_type": "manifest"},
        ],
        "relations": relations if relations is not None else [
            {"source": "compost", "target": "soil", "verb": "feeds_into"},
            {"source": "compost", "target": "missing", "verb": "feeds_into"},
        ],
    })
    return item


class TestBuildExamples:
    def test_three_kinds(self):
        examples = build_examples(knowledge_item(), LEXICON)
        kinds = [e["metadata"]["kind"] for e in examples]
        assert kinds == ["term_mapping", "entity_description", "entity_description", "relation_narration"]
        assert examples[0]["messages"][2]["content"] == "The canonical term is 'Compost'."
        assert examples[1]["messages"][2]["content"] == "Compost is a practical entity described in notes/soil.md."
        assert examples[-1]["messages"][2]["content"] == "Compost feeds into Soil."

    def test_capped_per_item(self):
        entities = [{"key": f"e{n}", "label": f"E{n}"} for n in range(MAX_EXAMPLES_PER_ITEM + 5)]
        examples = build_examples(knowledge_item(entities=entities, relations=[]), {})
        assert len(examples) == MAX_EXAMPLES_PER_ITEM


class TestWriteJsonl:
    def test_one_line_per_example(self, tmp_path):
        examples = build_examples(knowledge_item(), LEXICON)
        path = write_jsonl(examples, tmp_path / "nested" / "fine_tune.jsonl")
        lines = path.read_text().splitlines()
        assert len(lines) == len(examples)
        assert json.loads(lines[0])["metadata"]["source"] == "notes/soil.md"
