# tests/integration/pipeline/test_int_restart_recovery.py — v1
"""Integration tests: SQLite store and persisted graph across process restarts.

Each "process" builds fresh services from the same settings, so every
bit of state the next step relies on must have gone through the stores.
"""

from __future__ import annotations

import json

import pytest

from enliterator.api.facade import close_services
from enliterator.core.models import ItemDraft, ItemStatus, RunStatus
from enliterator.core.stages import StageName
from enliterator.embeddings.hashing_embedder import HashingEmbedder
from enliterator.extraction.base_capability import ExtractionResponse
from enliterator.graph.store.graph_store_factory import create_graph_store
from enliterator.pipeline.orchestrator import PipelineOrchestrator
from enliterator.pipeline.processor import StageServices
from enliterator.pipeline.reconcile import reconcile_batch
from enliterator.storage.store_factory import create_store

WORDS = [
    "Alpha", "Bravo", "Charlie", "Delta", "Echo", "Foxtrot", "Golf", "Hotel", "India", "Juliet",
    "Kilo", "Lima", "Mike", "November", "Oscar", "Papa", "Quebec", "Romeo", "Sierra", "Tango",
]


@pytest.fixture
def persistent_settings(settings, tmp_path):
    settings.store_backend = "sqlite"
    settings.store_path = tmp_path / "state" / "pipeline.db"
    settings.graph_store_path = tmp_path / "state" / "graph.json"
    return settings


@pytest.fixture
def start_process(persistent_settings, capabilities):
    """Return a callable that wires a fresh orchestrator over the persisted state."""
    opened: list[StageServices] = []

    def _start() -> PipelineOrchestrator:
        services = StageServices(
            settings=persistent_settings,
            store=create_store(persistent_settings),
            graph=create_graph_store(persistent_settings),
            embedder=HashingEmbedder(dimensions=persistent_settings.embedding_dimensions),
            capabilities=dict(capabilities),
        )
        opened.append(services)
        return PipelineOrchestrator(services)

    yield _start
    for services in opened:
        close_services(services)


class TestRestartRecovery:
    @pytest.mark.asyncio
    async def test_failed_intake_resumed_in_new_process(self, start_process, tmp_path):
        late = [tmp_path / "inbox" / f"late_{n}.md" for n in range(3)]
        drafts = [
            ItemDraft(source_path=f"notes/{word.lower()}.md", content=f"{word} field notes")
            for word in WORDS[:17]
        ] + [ItemDraft(source_path=str(path)) for path in late]

        first = start_process()
        batch = await first.create_batch("restart", drafts=drafts)
        run = await first.start_run(batch.id)
        assert run.status == RunStatus.FAILED
        close_services(first.services)

        late[0].parent.mkdir(parents=True)
        for word, path in zip(WORDS[17:], late):
            path.write_text(f"{word} arrived later", encoding="utf-8")

        second = start_process()
        resumed = await second.resume(run.id)
        assert resumed.status == RunStatus.COMPLETED
        assert resumed.resume_count == 1

        stored = await second.store.get_batch(batch.id)
        assert stored.status == "completed"
        assert stored.metrics[StageName.INTAKE].attempted == 3
        items = await second.store.list_items(batch.id)
        assert all(i.status(StageName.FINE_TUNE) == ItemStatus.SUCCEEDED for i in items)
        assert reconcile_batch(stored, items, second.policy, resumed) == []

        persisted = json.loads(second.settings.graph_store_path.read_text())
        documents = [n for n in persisted["graph"]["nodes"] if n.get("label") == "Document"]
        assert len(documents) == 20

    @pytest.mark.asyncio
    async def test_review_approval_spans_processes(self, start_process, make_drafts, make_capability):
        first = start_process()
        first.services.capabilities["rights_inference"] = make_capability(
            "rights_inference",
            lambda content, ctx: ExtractionResponse(
                result={"license": "cc_by", "publishable": True, "trainable": True}, confidence=0.3
            ),
        )
        batch = await first.create_batch("review", drafts=make_drafts("Alpha notes", "Bravo notes"))
        run = await first.start_run(batch.id)
        assert run.status == RunStatus.PAUSED
        close_services(first.services)

        second = start_process()
        approved = await second.approve_quarantined(batch.id, StageName.RIGHTS, note="owner replied")
        assert len(approved) == 2
        close_services(second.services)

        third = start_process()
        resumed = await third.resume(run.id)
        assert resumed.status == RunStatus.COMPLETED
        item = await third.store.get_item(approved[0])
        assert item.record(StageName.RIGHTS).metadata["manual_approval"]["note"] == "owner replied"
        stored = await third.store.get_batch(batch.id)
        assert stored.artifacts["graph"]["nodes"] == 6
