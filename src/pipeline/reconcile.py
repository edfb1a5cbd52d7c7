# src/pipeline/reconcile.py — v1
"""Batch status derivation and reconciliation against item statuses.

derive_batch_status() is the single rule the orchestrator uses to set
Batch.status: it depends only on the current stage and the latest
decision recorded for it. reconcile_batch() recounts item statuses per
stage and reports where stored metrics, decisions or status disagree.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from enliterator.core.models import (
    Batch,
    Item,
    ItemStatus,
    PipelineRun,
    RunStatus,
    StageDecision,
    StageOutcome,
)
from enliterator.core.stages import (
    BATCH_COMPLETED,
    BATCH_PENDING,
    STAGE_ORDER,
    StageName,
    batch_status,
    next_stage,
)
from enliterator.pipeline.policy import AdvancementPolicy
from enliterator.pipeline.processor import in_population

# Note prefix of a FAIL decision recorded because the stage raised.
ABORTED_NOTE = "aborted"

_PHASE_BY_DECISION = {
    StageDecision.ADVANCE: "completed",
    StageDecision.NEEDS_REVIEW: "needs_review",
    StageDecision.FAIL: "failed",
}


def derive_batch_status(batch: Batch) -> str:
    """Batch status from (current stage, latest decision for it)."""
    stage = batch.current_stage
    if stage is None:
        return BATCH_PENDING
    decision = batch.latest_decision(stage)
    if decision is None:
        return batch_status(stage, "running")
    if decision == StageDecision.ADVANCE and next_stage(stage) is None:
        return BATCH_COMPLETED
    return batch_status(stage, _PHASE_BY_DECISION[decision])


def count_stage(items: list[Item], stage: StageName) -> dict[str, int]:
    """Per-status counts of a stage over its population."""
    population = [i for i in items if in_population(i, stage)]
    counts = {s.value: 0 for s in ItemStatus}
    for item in population:
        counts[item.status(stage).value] += 1
    counts["total"] = len(population)
    return counts


def outcome_from_counts(
    stage: StageName, counts: dict[str, int], gate=None
) -> StageOutcome:
    return StageOutcome(
        stage=stage,
        total=counts["total"],
        succeeded=counts[ItemStatus.SUCCEEDED.value],
        quarantined=counts[ItemStatus.QUARANTINED.value],
        failed=counts[ItemStatus.FAILED.value],
        skipped=counts[ItemStatus.SKIPPED.value],
        gate=gate,
    )


@dataclass
class Discrepancy:
    """One disagreement between stored state and recomputed state."""

    stage: str
    field: str
    stored: Any
    recomputed: Any

    def __str__(self) -> str:
        return f"{self.stage}.{self.field}: stored={self.stored!r} recomputed={self.recomputed!r}"


def reconcile_batch(
    batch: Batch,
    items: list[Item],
    policy: AdvancementPolicy,
    run: PipelineRun | None = None,
) -> list[Discrepancy]:
    """Recompute counts, decisions and status; return every mismatch."""
    found: list[Discrepancy] = []

    for stage in STAGE_ORDER:
        metrics = batch.metrics.get(stage)
        if metrics is None:
            continue
        counts = count_stage(items, stage)
        for name in ("total", "succeeded", "quarantined", "failed", "skipped"):
            stored = getattr(metrics, name)
            if stored != counts[name]:
                found.append(Discrepancy(stage.value, name, stored, counts[name]))

        record = batch.decisions.get(stage)
        if record is not None and record.source == "policy" and not record.note.startswith(ABORTED_NOTE):
            decision = policy.decide(outcome_from_counts(stage, counts, metrics.gate))
            if decision != record.decision:
                found.append(Discrepancy(stage.value, "decision", record.decision.value, decision.value))

    expected = derive_batch_status(batch)
    if batch.status != expected:
        found.append(Discrepancy("batch", "status", batch.status, expected))

    if run is not None and run.status != RunStatus.RUNNING and batch.current_stage is not None:
        stuck = sum(1 for i in items if i.status(batch.current_stage) == ItemStatus.IN_PROGRESS)
        if stuck:
            found.append(Discrepancy(batch.current_stage.value, "in_progress", stuck, 0))

    return found
