# tests/unit/pipeline/test_orchestrator.py — v1
"""Tests for pipeline/orchestrator.py: the batch state machine end to end.

Covers the reference scenarios: quarantine below the review ratio,
intake failure and resume, lexicon deduplication, graph schema ordering
and concurrent run starts.
"""

from __future__ import annotations

import asyncio

import pytest

from enliterator.core.errors import NotFoundError, RunConflictError
from enliterator.core.models import ItemDraft, ItemStatus, RunStatus, StageDecision
from enliterator.core.stages import STAGE_ORDER, StageName
from enliterator.extraction.base_capability import ExtractionResponse
from enliterator.extraction.entity_extractor import EntityExtractorCapability
from enliterator.extraction.term_extractor import TermExtractorCapability
from enliterator.graph.schema import DOCUMENT_LABEL, entity_node_id
from enliterator.pipeline.stages.graph import GraphProcessor

WORDS = [
    "Alpha", "Bravo", "Charlie", "Delta", "Echo", "Foxtrot", "Golf", "Hotel", "India", "Juliet",
    "Kilo", "Lima", "Mike", "November", "Oscar", "Papa", "Quebec", "Romeo", "Sierra", "Tango",
]


def contents(n: int) -> list[str]:
    return [f"{WORDS[i]} notes on topic {i}" for i in range(n)]


def rights_by_content(content: str, context: dict) -> ExtractionResponse:
    confidence = 0.65 if "uncertain" in content else 0.9
    return ExtractionResponse(
        result={"license": "cc_by", "consent": "explicit_consent", "owner": "t",
                "publishable": True, "trainable": True},
        confidence=confidence,
    )


class TestCreateBatch:
    @pytest.mark.asyncio
    async def test_items_from_drafts_and_sources(self, orchestrator, make_drafts, tmp_path):
        (tmp_path / "a.md").write_text("Alpha file")
        batch = await orchestrator.create_batch(
            "demo", sources=[tmp_path / "a.md"], drafts=make_drafts("Bravo inline")
        )
        items = await orchestrator.store.list_items(batch.id)
        assert [i.ordinal for i in items] == [1, 2]
        assert items[0].source_path.endswith("a.md")
        assert items[1].content == "Bravo inline"
        assert batch.status == "pending"

    @pytest.mark.asyncio
    async def test_unknown_batch(self, orchestrator):
        with pytest.raises(NotFoundError):
            await orchestrator.start_run("missing")


class TestFullRun:
    @pytest.mark.asyncio
    async def test_completes_all_stages(self, orchestrator, make_drafts):
        batch = await orchestrator.create_batch("demo", drafts=make_drafts(*contents(3)))
        run = await orchestrator.start_run(batch.id)

        assert run.status == RunStatus.COMPLETED
        assert run.current_stage == StageName.FINE_TUNE
        assert set(run.stage_statuses.values()) == {"completed"}
        stored = await orchestrator.store.get_batch(batch.id)
        assert stored.status == "completed"
        assert list(stored.metrics) == list(STAGE_ORDER)
        assert all(d.decision == StageDecision.ADVANCE for d in stored.decisions.values())
        assert stored.artifacts["fine_tune"]["examples"] > 0

        graph = await orchestrator.services.graph.to_networkx(batch.id)
        docs = [n for n, d in graph.nodes(data=True) if d["label"] == DOCUMENT_LABEL]
        assert len(docs) == 3

    @pytest.mark.asyncio
    async def test_empty_batch_advances_through(self, orchestrator):
        batch = await orchestrator.create_batch("empty")
        run = await orchestrator.start_run(batch.id)
        assert run.status == RunStatus.COMPLETED
        stored = await orchestrator.store.get_batch(batch.id)
        assert stored.metrics[StageName.INTAKE].total == 0


class TestQuarantineBelowRatio:
    @pytest.mark.asyncio
    async def test_quarantined_item_excluded_but_retained(self, orchestrator, make_drafts, make_capability):
        orchestrator.services.capabilities["rights_inference"] = make_capability(
            "rights_inference", rights_by_content
        )
        texts = contents(10)
        texts[4] = "Echo uncertain provenance"
        batch = await orchestrator.create_batch("ten", drafts=make_drafts(*texts))
        run = await orchestrator.start_run(batch.id)

        stored = await orchestrator.store.get_batch(batch.id)
        rights = stored.metrics[StageName.RIGHTS]
        assert (rights.succeeded, rights.quarantined) == (9, 1)
        assert stored.decisions[StageName.RIGHTS].decision == StageDecision.ADVANCE
        assert stored.metrics[StageName.LEXICON].total == 9
        assert run.status == RunStatus.COMPLETED

        items = await orchestrator.store.list_items(batch.id)
        held = items[4]
        assert held.status(StageName.RIGHTS) == ItemStatus.QUARANTINED
        assert held.status(StageName.LEXICON) == ItemStatus.NOT_STARTED
        record = held.record(StageName.RIGHTS).metadata["rights"]
        assert record["provisional"] is True
        assert record["publishable"] is False
        assert held.record(StageName.RIGHTS).metadata["confidence"] == 0.65


class TestIntakeFailureAndResume:
    @pytest.mark.asyncio
    async def test_fail_then_resume_reprocesses_only_failed(self, orchestrator, make_drafts, tmp_path):
        missing = [tmp_path / f"late_{n}.md" for n in range(3)]
        drafts = make_drafts(*contents(17)) + [ItemDraft(source_path=str(p)) for p in missing]
        batch = await orchestrator.create_batch("twenty", drafts=drafts)
        run = await orchestrator.start_run(batch.id)

        assert run.status == RunStatus.FAILED
        assert run.stage_statuses[StageName.INTAKE] == "failed"
        assert "3/20" in run.error_summary
        assert len(run.error_details) == 3
        stored = await orchestrator.store.get_batch(batch.id)
        assert stored.status == "intake_failed"
        report = await orchestrator.status(run.id)
        assert report.recommended_command == f"enliterator resume {run.id}"

        for n, path in enumerate(missing):
            path.write_text(f"{WORDS[17 + n]} arrived late")

        resumed = await orchestrator.resume(run.id)
        assert resumed.resume_count == 1
        assert resumed.status == RunStatus.COMPLETED

        stored = await orchestrator.store.get_batch(batch.id)
        intake = stored.metrics[StageName.INTAKE]
        assert intake.attempted == 3
        assert (intake.total, intake.failed, intake.succeeded) == (20, 0, 20)
        assert stored.decisions[StageName.INTAKE].decision == StageDecision.ADVANCE

        items = await orchestrator.store.list_items(batch.id)
        history = items[-1].record(StageName.INTAKE).metadata["previous_errors"]
        assert history[0]["status"] == "failed"
        assert "File not found" in history[0]["error"]
        assert items[0].record(StageName.INTAKE).attempts == 1


class TestLexiconDuplicates:
    @pytest.mark.asyncio
    async def test_duplicate_item_skipped_and_excluded(self, orchestrator, make_drafts):
        texts = ["Ledger first copy", "Ledger second copy", "Alpha", "Bravo", "Charlie"]
        batch = await orchestrator.create_batch("five", drafts=make_drafts(*texts))
        await orchestrator.start_run(batch.id)

        items = await orchestrator.store.list_items(batch.id)
        a, b = items[0], items[1]
        assert a.status(StageName.LEXICON) == ItemStatus.SUCCEEDED
        assert b.status(StageName.LEXICON) == ItemStatus.SKIPPED
        assert b.record(StageName.LEXICON).metadata["duplicate_of"] == [a.id]
        assert b.record(StageName.LEXICON).metadata["contributed"] is False
        assert b.status(StageName.POOLS) == ItemStatus.NOT_STARTED

        stored = await orchestrator.store.get_batch(batch.id)
        lexicon = stored.metrics[StageName.LEXICON]
        assert (lexicon.succeeded, lexicon.skipped, lexicon.failed) == (4, 1, 0)
        assert stored.metrics[StageName.POOLS].total == 4
        assert stored.artifacts["lexicon"]["ledger"]["contributing_item_ids"] == [a.id, b.id]


class TestGraphSchemaOrdering:
    @pytest.mark.asyncio
    async def test_write_before_schema_aborts_stage(self, orchestrator, make_drafts):
        class SchemaSkippingGraph(GraphProcessor):
            async def before_stage(self, batch, population):
                return None

        orchestrator.registry.register(StageName.GRAPH, SchemaSkippingGraph)
        batch = await orchestrator.create_batch("g", drafts=make_drafts(*contents(3)))
        run = await orchestrator.start_run(batch.id)

        assert run.status == RunStatus.FAILED
        assert run.stage_statuses[StageName.GRAPH] == "failed"
        assert "SchemaOrderError" in run.error_summary
        assert (run.activity[-1].event, run.activity[-1].stage) == ("aborted", StageName.GRAPH)
        stored = await orchestrator.store.get_batch(batch.id)
        assert stored.status == "graph_failed"
        assert stored.decisions[StageName.GRAPH].note.startswith("aborted")
        assert await orchestrator.services.graph.node_count() == 0


class TestSharedEntityAcrossItems:
    @pytest.mark.asyncio
    async def test_identifier_and_phrase_share_one_node(self, orchestrator, settings):
        settings.confidence_threshold = 0.0
        orchestrator.services.capabilities["term_extractor"] = TermExtractorCapability()
        orchestrator.services.capabilities["entity_extractor"] = EntityExtractorCapability()
        batch = await orchestrator.create_batch("shared", drafts=[
            ItemDraft(source_path="src/loader.py", content="class DataLoader:\n    pass\n"),
            ItemDraft(source_path="notes/b.md",
                      content="Nightly Report Builder reads via Data Loader daily.\n"),
        ])
        run = await orchestrator.start_run(batch.id)

        assert run.status == RunStatus.COMPLETED
        items = await orchestrator.store.list_items(batch.id)
        pools = [i.record(StageName.POOLS).metadata["entities"] for i in items]
        shared = [e["pool_type"] for entities in pools for e in entities if e["key"] == "data loader"]
        assert shared == ["manifest", "manifest"]
        assert all(i.status(StageName.GRAPH) == ItemStatus.SUCCEEDED for i in items)
        node = await orchestrator.services.graph.get_node(entity_node_id(batch.id, "data loader"))
        assert node["label"] == "Manifest"


class TestConcurrentStart:
    @pytest.mark.asyncio
    async def test_second_start_conflicts(self, orchestrator, make_drafts):
        batch = await orchestrator.create_batch("c", drafts=make_drafts(*contents(2)))
        results = await asyncio.gather(
            orchestrator.start_run(batch.id),
            orchestrator.start_run(batch.id),
            return_exceptions=True,
        )
        conflicts = [r for r in results if isinstance(r, RunConflictError)]
        runs = [r for r in results if not isinstance(r, BaseException)]
        assert len(conflicts) == 1
        assert len(runs) == 1
        assert runs[0].status == RunStatus.COMPLETED
        assert conflicts[0].active_run_id == runs[0].id
        assert len(await orchestrator.store.list_runs(batch.id)) == 1

    @pytest.mark.asyncio
    async def test_new_run_after_completion(self, orchestrator, make_drafts):
        batch = await orchestrator.create_batch("c", drafts=make_drafts(*contents(1)))
        await orchestrator.start_run(batch.id)
        second = await orchestrator.start_run(batch.id)
        assert second.status == RunStatus.COMPLETED
        assert (await orchestrator.latest_run(batch.id)).id == second.id
