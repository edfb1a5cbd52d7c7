# tests/unit/extraction/test_term_extractor.py — v1
"""Tests for extraction/term_extractor.py: heuristic term candidates."""

from __future__ import annotations

import pytest

from enliterator.extraction.base_capability import FatalError
from enliterator.extraction.term_extractor import TermExtractorCapability, group_terms


class TestGroupTerms:
    def test_groups_variants(self):
        terms = group_terms([
            ("Knowledge Graph", "concept"),
            ("knowledge_graph", "identifier"),
            ("KnowledgeGraph", "identifier"),
        ])
        assert len(terms) == 1
        assert terms[0]["canonical"] == "Knowledge Graph"
        assert terms[0]["frequency"] == 3
        assert terms[0]["term_type"] == "concept"

    def test_drops_stopwords_and_short(self):
        assert group_terms([("the", "path"), ("ab", "path")]) == []


class TestCapability:
    @pytest.mark.asyncio
    async def test_requires_input(self):
        with pytest.raises(FatalError):
            await TermExtractorCapability().extract("", {})

    @pytest.mark.asyncio
    async def test_phrases_and_path(self):
        content = "our Rights Ledger records every Consent Form we receive."
        response = await TermExtractorCapability().extract(
            content, {"path": "docs/rights_ledger.md", "media_type": "text"}
        )
        canonicals = {t["canonical"] for t in response.result["terms"]}
        assert "Rights Ledger" in canonicals
        assert "Consent Form" in canonicals
        assert response.confidence >= 0.7

    @pytest.mark.asyncio
    async def test_code_definitions(self):
        content = "class PipelineRunner:\n    def advance_stage(self):\n        pass\n"
        response = await TermExtractorCapability().extract(
            content, {"path": "runner.py", "media_type": "code"}
        )
        keys = {t["canonical"].lower() for t in response.result["terms"]}
        assert "advance_stage" in keys or "advance stage" in keys

    @pytest.mark.asyncio
    async def test_no_terms_low_confidence(self):
        response = await TermExtractorCapability().extract("a b c", {"media_type": "text"})
        assert response.result["terms"] == []
        assert response.confidence == 0.3
