# tests/unit/extraction/test_entity_extractor.py — v1
"""Tests for extraction/entity_extractor.py: pools and relations."""

from __future__ import annotations

import pytest

from enliterator.extraction.base_capability import FatalError
from enliterator.extraction.entity_extractor import EntityExtractorCapability, verb_for


class TestVerbs:
    def test_known_pair(self):
        assert verb_for("idea", "manifest") == "embodies"

    def test_default(self):
        assert verb_for("experience", "idea") == "connects_to"


class TestCapability:
    @pytest.mark.asyncio
    async def test_requires_content(self):
        with pytest.raises(FatalError):
            await EntityExtractorCapability().extract("", {"terms": []})

    @pytest.mark.asyncio
    async def test_terms_become_entities(self):
        terms = [
            {"canonical": "Rights Ledger", "surface_forms": ["rights ledger"], "term_type": "concept"},
            {"canonical": "LedgerEntry", "surface_forms": [], "term_type": "identifier"},
            {"canonical": "Absent Term", "surface_forms": [], "term_type": "concept"},
        ]
        content = "The Rights Ledger stores one LedgerEntry per item."
        response = await EntityExtractorCapability().extract(content, {"terms": terms})
        entities = {e["key"]: e for e in response.result["entities"]}
        assert set(entities) == {"rights ledger", "ledger entry"}
        assert entities["rights ledger"]["pool_type"] == "idea"
        assert entities["ledger entry"]["pool_type"] == "manifest"
        assert "forms" not in entities["rights ledger"]

        relation = response.result["relations"][0]
        assert relation == {"source": "rights ledger", "target": "ledger entry", "verb": "embodies"}

    @pytest.mark.asyncio
    async def test_evolution_and_experience(self):
        content = "Changelog for v2.1\nWe learned that reviews take time."
        response = await EntityExtractorCapability().extract(content, {"terms": []})
        pools = {e["pool_type"] for e in response.result["entities"]}
        assert {"evolutionary", "experience"} <= pools

    @pytest.mark.asyncio
    async def test_nothing_found(self):
        response = await EntityExtractorCapability().extract("lorem ipsum", {"terms": []})
        assert response.result == {"entities": [], "relations": []}
        assert response.confidence == 0.3
