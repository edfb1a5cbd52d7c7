# tests/unit/pipeline/test_reconcile.py — v1
"""Tests for pipeline/reconcile.py: batch status derivation and recount."""

from __future__ import annotations

import pytest

from enliterator.core.models import (
    Batch,
    DecisionRecord,
    ItemStatus,
    RunStatus,
    StageDecision,
)
from enliterator.core.stages import StageName
from enliterator.pipeline.policy import AdvancementPolicy
from enliterator.pipeline.reconcile import (
    Discrepancy,
    count_stage,
    derive_batch_status,
    outcome_from_counts,
    reconcile_batch,
)


def at(stage: StageName | None, decision: StageDecision | None = None) -> Batch:
    batch = Batch(name="b", current_stage=stage)
    if stage is not None and decision is not None:
        batch.decisions[stage] = DecisionRecord(decision=decision)
    return batch


class TestDeriveBatchStatus:
    def test_pending_before_first_stage(self):
        assert derive_batch_status(at(None)) == "pending"

    def test_running_without_decision(self):
        assert derive_batch_status(at(StageName.RIGHTS)) == "rights_running"

    @pytest.mark.parametrize(
        "decision,expected",
        [
            (StageDecision.ADVANCE, "pools_completed"),
            (StageDecision.NEEDS_REVIEW, "pools_needs_review"),
            (StageDecision.FAIL, "pools_failed"),
        ],
    )
    def test_stage_phases(self, decision, expected):
        assert derive_batch_status(at(StageName.POOLS, decision)) == expected

    def test_last_stage_advance_is_completed(self):
        assert derive_batch_status(at(StageName.FINE_TUNE, StageDecision.ADVANCE)) == "completed"


class TestReconcile:
    @pytest.mark.asyncio
    async def test_consistent_batch(self, orchestrator, make_drafts):
        batch = await orchestrator.create_batch("r", drafts=make_drafts("Alpha", "Bravo", "Charlie"))
        run = await orchestrator.start_run(batch.id)
        stored = await orchestrator.store.get_batch(batch.id)
        items = await orchestrator.store.list_items(batch.id)
        assert reconcile_batch(stored, items, orchestrator.policy, run) == []

    @pytest.mark.asyncio
    async def test_reports_each_mismatch(self, orchestrator, make_drafts):
        batch = await orchestrator.create_batch("r", drafts=make_drafts("Alpha", "Bravo"))
        await orchestrator.start_run(batch.id)
        stored = await orchestrator.store.get_batch(batch.id)
        items = await orchestrator.store.list_items(batch.id)

        stored.metrics[StageName.INTAKE] = stored.metrics[StageName.INTAKE].model_copy(
            update={"succeeded": 7}
        )
        stored.decisions[StageName.LEXICON] = DecisionRecord(decision=StageDecision.FAIL)
        stored.status = "graph_running"

        found = reconcile_batch(stored, items, AdvancementPolicy(orchestrator.settings))
        rendered = {str(d) for d in found}
        assert "intake.succeeded: stored=7 recomputed=2" in rendered
        assert "lexicon.decision: stored='fail' recomputed='advance'" in rendered
        assert "batch.status: stored='graph_running' recomputed='completed'" in rendered
        assert len(found) == 3

    @pytest.mark.asyncio
    async def test_aborted_decision_not_recomputed(self, orchestrator, make_drafts):
        batch = await orchestrator.create_batch("r", drafts=make_drafts("Alpha"))
        await orchestrator.start_run(batch.id)
        stored = await orchestrator.store.get_batch(batch.id)
        stored.decisions[StageName.GRAPH] = DecisionRecord(
            decision=StageDecision.FAIL, note="aborted: SchemaOrderError: no schema"
        )
        found = reconcile_batch(stored, await orchestrator.store.list_items(batch.id), orchestrator.policy)
        assert all(d.field != "decision" for d in found)

    @pytest.mark.asyncio
    async def test_in_progress_items_of_idle_run(self, orchestrator, make_drafts):
        batch = await orchestrator.create_batch("r", drafts=make_drafts("Alpha", "Bravo"))
        run = await orchestrator.start_run(batch.id, auto_advance=False)
        assert run.status == RunStatus.PAUSED

        items = await orchestrator.store.list_items(batch.id)
        record = items[0].record(StageName.INTAKE)
        record.status = ItemStatus.IN_PROGRESS
        stored = await orchestrator.store.get_batch(batch.id)

        found = reconcile_batch(stored, items, orchestrator.policy, run)
        assert Discrepancy("intake", "in_progress", 1, 0) in found
        assert Discrepancy("intake", "succeeded", 2, 1) in found


class TestCounts:
    @pytest.mark.asyncio
    async def test_count_stage_follows_population(self, orchestrator, make_drafts):
        batch = await orchestrator.create_batch(
            "c", drafts=make_drafts("Ledger one", "Ledger two", "Alpha")
        )
        await orchestrator.start_run(batch.id)
        items = await orchestrator.store.list_items(batch.id)

        lexicon = count_stage(items, StageName.LEXICON)
        assert (lexicon["total"], lexicon["succeeded"], lexicon["skipped"]) == (3, 2, 1)
        assert count_stage(items, StageName.POOLS)["total"] == 2

        outcome = outcome_from_counts(StageName.LEXICON, lexicon)
        assert outcome.total == 3
        assert outcome.skipped == 1
