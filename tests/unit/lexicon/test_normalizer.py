# tests/unit/lexicon/test_normalizer.py — v1
"""Tests for lexicon/normalizer.py: keys, canonical forms and dedup."""

from __future__ import annotations

import pytest

from enliterator.lexicon.normalizer import build_lexicon, choose_canonical, normalize_key


class TestNormalizeKey:
    @pytest.mark.parametrize("term,key", [
        ("KnowledgeGraph", "knowledge graph"),
        ("knowledge_graph", "knowledge graph"),
        ("Knowledge-Graph!", "knowledge graph"),
        ("  Knowledge   Graph ", "knowledge graph"),
    ])
    def test_variants_share_key(self, term, key):
        assert normalize_key(term) == key


class TestChooseCanonical:
    def test_prefers_capitalized_multiword(self):
        assert choose_canonical(["knowledge graph", "Knowledge Graph", "KG"]) == "Knowledge Graph"

    def test_empty(self):
        assert choose_canonical(["", "  "]) == ""


def _t(canonical: str, *forms: str) -> dict:
    return {"canonical": canonical, "surface_forms": list(forms)}


class TestBuildLexicon:
    def test_first_contributor_wins(self):
        lexicon, verdicts = build_lexicon([
            ("A", [_t("Rights Ledger"), _t("Consent")]),
            ("B", [_t("rights ledger")]),
        ])
        entry = lexicon["rights ledger"]
        assert entry.contributing_item_ids == ["A", "B"]
        assert entry.canonical == "Rights Ledger"
        assert verdicts["A"].new_terms == ["rights ledger", "consent"]
        assert verdicts["B"].all_duplicates
        assert verdicts["B"].duplicate_of == ["A"]

    def test_partial_duplicate_is_not_all_duplicates(self):
        _, verdicts = build_lexicon([
            ("A", [_t("Consent")]),
            ("B", [_t("Consent"), _t("Provenance")]),
        ])
        assert not verdicts["B"].all_duplicates
        assert verdicts["B"].new_terms == ["provenance"]

    def test_item_without_terms(self):
        _, verdicts = build_lexicon([("A", [])])
        assert not verdicts["A"].all_duplicates

    def test_repeat_within_item_counted_once(self):
        lexicon, verdicts = build_lexicon([("A", [_t("Consent"), _t("consent")])])
        assert verdicts["A"].new_terms == ["consent"]
        assert verdicts["A"].duplicate_terms == []

    def test_to_dict_dedups_forms(self):
        lexicon, _ = build_lexicon([
            ("A", [_t("Consent", "consent")]),
            ("B", [_t("consent", "Consent")]),
        ])
        data = lexicon["consent"].to_dict()
        assert data["surface_forms"] == ["Consent", "consent"]
        assert data["contributing_item_ids"] == ["A", "B"]
