# src/lexicon/normalizer.py — v1
"""Term normalization and batch-level lexicon deduplication.

normalize_key() folds surface variants onto one key; choose_canonical()
picks the display form among the variants; build_lexicon() walks items in
ordinal order and records which item first contributed each canonical term.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable

_PUNCT = re.compile(r"[^\w\s]")
_SPACES = re.compile(r"\s+")
_CAMEL = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def normalize_key(term: str) -> str:
    """Lowercase, split camelCase and snake_case, drop punctuation."""
    text = _CAMEL.sub(" ", term.strip())
    text = text.replace("_", " ").replace("-", " ")
    text = _PUNCT.sub("", text.lower())
    return _SPACES.sub(" ", text).strip()


def canonical_score(form: str, frequency: int) -> float:
    """Rank a surface form: capitalized and multi-word forms win."""
    score = float(frequency)
    if form[:1].isupper():
        score += 10
    if " " in form.strip():
        score += 5
    score += len(form) / 10
    return score


def choose_canonical(forms: Iterable[str]) -> str:
    """Pick the best display form among surface variants of one key."""
    counts = Counter(f.strip() for f in forms if f.strip())
    if not counts:
        return ""
    return max(counts, key=lambda f: (canonical_score(f, counts[f]), f))


@dataclass
class LexiconEntry:
    """One canonical term of a batch lexicon."""

    canonical: str
    key: str
    term_type: str = "concept"
    surface_forms: list[str] = field(default_factory=list)
    contributing_item_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "canonical": self.canonical,
            "term_type": self.term_type,
            "surface_forms": sorted(set(self.surface_forms)),
            "contributing_item_ids": list(self.contributing_item_ids),
        }


@dataclass
class DedupVerdict:
    """Result of the dedup pass for a single item."""

    item_id: str
    new_terms: list[str]
    duplicate_terms: list[str]
    duplicate_of: list[str]

    @property
    def all_duplicates(self) -> bool:
        return bool(self.duplicate_terms) and not self.new_terms


def build_lexicon(
    contributions: list[tuple[str, list[dict[str, Any]]]],
) -> tuple[dict[str, LexiconEntry], dict[str, DedupVerdict]]:
    """Merge per-item terms into a batch lexicon.

    Args:
        contributions: (item_id, terms) pairs in ordinal order. Each term is
            a dict with at least ``canonical`` and optionally
            ``surface_forms`` and ``term_type``.

    Returns:
        Tuple of (lexicon keyed by normalized key, verdict per item id).
        ``contributing_item_ids`` lists every item that produced the key,
        first contributor first; later items are duplicates of that one.
    """
    lexicon: dict[str, LexiconEntry] = {}
    verdicts: dict[str, DedupVerdict] = {}

    for item_id, terms in contributions:
        new_terms: list[str] = []
        duplicates: list[str] = []
        duplicate_of: list[str] = []
        seen_in_item: set[str] = set()

        for term in terms:
            key = normalize_key(str(term.get("canonical", "")))
            if not key or key in seen_in_item:
                continue
            seen_in_item.add(key)
            forms = [str(term["canonical"]), *map(str, term.get("surface_forms", []))]

            entry = lexicon.get(key)
            if entry is None:
                lexicon[key] = LexiconEntry(
                    canonical=str(term["canonical"]),
                    key=key,
                    term_type=str(term.get("term_type", "concept")),
                    surface_forms=forms,
                    contributing_item_ids=[item_id],
                )
                new_terms.append(key)
                continue

            entry.surface_forms.extend(forms)
            entry.canonical = choose_canonical([entry.canonical, *entry.surface_forms])
            duplicates.append(key)
            first = entry.contributing_item_ids[0]
            if item_id not in entry.contributing_item_ids:
                entry.contributing_item_ids.append(item_id)
            if first != item_id and first not in duplicate_of:
                duplicate_of.append(first)

        verdicts[item_id] = DedupVerdict(item_id, new_terms, duplicates, duplicate_of)

    return lexicon, verdicts
