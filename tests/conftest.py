# tests/conftest.py — v1
"""Shared test fixtures for unit and integration tests.

Provides settings isolated from any .env file, scripted extraction
capabilities, in-memory services and an orchestrator wired to them.
No network access; graph, store and outputs live in memory or tmp_path.
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from enliterator.config.settings import Settings
from enliterator.core.models import ItemDraft
from enliterator.embeddings.hashing_embedder import HashingEmbedder
from enliterator.extraction.base_capability import (
    BaseExtractionCapability,
    ExtractionResponse,
)
from enliterator.graph.store.networkx_store import NetworkxGraphStore
from enliterator.pipeline.orchestrator import PipelineOrchestrator
from enliterator.pipeline.processor import StageServices
from enliterator.storage.memory_store import MemoryPipelineStore


class ScriptedCapability(BaseExtractionCapability):
    """Capability whose answer is decided by a callable over (content, context).

    The script returns either an ExtractionResponse or an exception
    instance, which is raised.
    """

    def __init__(
        self,
        name: str,
        script: Callable[[str, dict[str, Any]], ExtractionResponse | Exception],
    ) -> None:
        self._name = name
        self._script = script
        self.calls: list[tuple[str, dict[str, Any]]] = []

    @property
    def name(self) -> str:
        return self._name

    async def extract(self, content: str, context: dict[str, Any]) -> ExtractionResponse:
        self.calls.append((content, context))
        answer = self._script(content, context)
        if isinstance(answer, Exception):
            raise answer
        return answer


def rights_answer(confidence: float = 0.9, **overrides: Any) -> ExtractionResponse:
    result = {
        "license": "cc_by",
        "consent": "explicit_consent",
        "owner": "tester",
        "publishable": True,
        "trainable": True,
    }
    result.update(overrides)
    return ExtractionResponse(result=result, confidence=confidence)


def terms_answer(*canonicals: str, confidence: float = 0.9) -> ExtractionResponse:
    return ExtractionResponse(
        result={"terms": [
            {"canonical": c, "surface_forms": [c, c.lower()], "term_type": "concept"}
            for c in canonicals
        ]},
        confidence=confidence,
    )


def default_entities(content: str, context: dict[str, Any]) -> ExtractionResponse:
    terms = context.get("terms") or []
    pools = ["idea", "manifest", "experience", "practical", "evolutionary"]
    entities = [
        {"key": t["canonical"].lower(), "label": t["canonical"], "pool_type": pools[i % 5]}
        for i, t in enumerate(terms)
    ]
    relations = [
        {"source": a["key"], "target": b["key"], "verb": "connects_to"}
        for a, b in zip(entities, entities[1:])
    ]
    return ExtractionResponse(result={"entities": entities, "relations": relations}, confidence=0.9)


def first_word_terms(content: str, context: dict[str, Any]) -> ExtractionResponse:
    """One term per item: the first word of its content, capitalized."""
    word = (content.split() or ["Untitled"])[0].strip(".,").capitalize()
    return terms_answer(word, f"{word} Practice")


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        store_backend="memory",
        store_path=None,
        graph_store_type="networkx",
        graph_store_path=None,
        output_root=tmp_path / "output",
        retry_jitter=False,
        retry_base_delay_s=0.0,
        embedding_dimensions=32,
        literacy_min_score=0.0,
        log_format="text",
    )


@pytest.fixture
def capabilities() -> dict[str, ScriptedCapability]:
    return {
        "rights_inference": ScriptedCapability("rights_inference", lambda c, ctx: rights_answer()),
        "term_extractor": ScriptedCapability("term_extractor", first_word_terms),
        "entity_extractor": ScriptedCapability("entity_extractor", default_entities),
    }


@pytest.fixture
def services(settings, capabilities) -> StageServices:
    async def no_sleep(_: float) -> None:
        return None

    return StageServices(
        settings=settings,
        store=MemoryPipelineStore(),
        graph=NetworkxGraphStore(),
        embedder=HashingEmbedder(dimensions=settings.embedding_dimensions),
        capabilities=dict(capabilities),
        sleep=no_sleep,
    )


@pytest.fixture
def orchestrator(services) -> PipelineOrchestrator:
    return PipelineOrchestrator(services)


def text_drafts(*contents: str) -> list[ItemDraft]:
    """Inline drafts named doc_<n>.md so media detection sees text."""
    return [
        ItemDraft(source_path=f"notes/doc_{n}.md", content=content)
        for n, content in enumerate(contents, start=1)
    ]


@pytest.fixture
def make_drafts() -> Callable[..., list[ItemDraft]]:
    return text_drafts


@pytest.fixture
def make_capability() -> type[ScriptedCapability]:
    return ScriptedCapability


@pytest.fixture
def answers():
    """Canned capability answers: answers.rights(...), answers.terms(...)."""

    class _Answers:
        rights = staticmethod(rights_answer)
        terms = staticmethod(terms_answer)
        entities = staticmethod(default_entities)

    return _Answers
