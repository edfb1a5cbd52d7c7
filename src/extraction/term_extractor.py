# src/extraction/term_extractor.py — v1
"""Heuristic term extraction for the lexicon stage.

Candidates come from the file name, capitalized phrases, code
identifiers and configuration keys. Variants are grouped with
normalize_key() so each item reports one entry per canonical term.
"""

from __future__ import annotations

import re
from collections import defaultdict
from pathlib import PurePath
from typing import Any

from enliterator.extraction.base_capability import (
    BaseExtractionCapability,
    ExtractionResponse,
    FatalError,
)
from enliterator.lexicon.normalizer import choose_canonical, normalize_key

_PHRASE = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)+\b")
_CAMEL_IDENT = re.compile(r"\b[A-Z][a-z0-9]+(?:[A-Z][a-z0-9]+)+\b")
_CODE_DEF = re.compile(r"\b(?:def|class|function|module|struct)\s+([A-Za-z_][A-Za-z0-9_]{2,})")
_CONFIG_KEY = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_.-]{2,})\s*[:=]", re.M)

_STOPWORDS = frozenset({"the", "and", "for", "with", "this", "that", "from", "init", "main", "index"})
MAX_TERMS = 50


class TermExtractorCapability(BaseExtractionCapability):
    """Pattern-based term extractor."""

    @property
    def name(self) -> str:
        return "term_extractor"

    async def extract(self, content: str, context: dict[str, Any]) -> ExtractionResponse:
        path = str(context.get("path") or "")
        if not content and not path:
            raise FatalError("No content captured for term extraction")

        media_type = str(context.get("media_type") or "text")
        candidates: list[tuple[str, str]] = []

        if path:
            for part in re.split(r"[_\-.\s]", PurePath(path).stem):
                if len(part) >= 3:
                    candidates.append((part, "path"))

        candidates += [(m, "concept") for m in _PHRASE.findall(content)]
        candidates += [(m, "identifier") for m in _CAMEL_IDENT.findall(content)]
        if media_type == "code":
            candidates += [(m, "identifier") for m in _CODE_DEF.findall(content)]
        if media_type == "config":
            candidates += [(m, "setting") for m in _CONFIG_KEY.findall(content)]

        terms = group_terms(candidates)
        return ExtractionResponse(result={"terms": terms}, confidence=_confidence(terms))


def group_terms(candidates: list[tuple[str, str]]) -> list[dict[str, Any]]:
    """Group candidate (surface, type) pairs by normalized key."""
    forms: dict[str, list[str]] = defaultdict(list)
    types: dict[str, str] = {}
    for surface, term_type in candidates:
        key = normalize_key(surface)
        if len(key) < 3 or key in _STOPWORDS:
            continue
        forms[key].append(surface)
        types.setdefault(key, term_type)

    ranked = sorted(forms, key=lambda k: (-len(forms[k]), k))[:MAX_TERMS]
    return [
        {
            "canonical": choose_canonical(forms[key]),
            "surface_forms": sorted(set(forms[key])),
            "term_type": types[key],
            "frequency": len(forms[key]),
        }
        for key in ranked
    ]


def _confidence(terms: list[dict[str, Any]]) -> float:
    if not terms:
        return 0.3
    non_path = sum(1 for t in terms if t["term_type"] != "path")
    return round(min(0.95, 0.6 + 0.05 * non_path), 2)
