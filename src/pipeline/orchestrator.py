# src/pipeline/orchestrator.py — v1
"""Pipeline orchestrator: the batch state machine.

Drives a batch through the nine stages:

  pending -> <stage>_running -> <stage>_completed | _needs_review | _failed
          -> <next>_running -> ... -> completed

After each stage the advancement policy decides. ``advance`` chains the
next stage through the executor (unless the run was paused or runs in
manual mode), ``needs_review`` parks the run until an operator forces it
forward or approves quarantined items, and ``fail`` halts the run until
``resume``.

The orchestrator keeps the run it is driving in memory; flags written by
other callers (pause requests, cancellation) are merged from the store
before every save so they are never overwritten.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from pydantic import BaseModel, Field

from enliterator.config.settings import Settings
from enliterator.core.errors import InvalidResumeTarget, NotFoundError
from enliterator.core.models import (
    MAX_ACTIVITY_ENTRIES,
    ActivityEntry,
    Batch,
    DecisionRecord,
    Item,
    ItemDraft,
    ItemStatus,
    MediaType,
    PipelineRun,
    RunStatus,
    StageDecision,
    StageMetrics,
    StageOutcome,
    utcnow,
)
from enliterator.core.stages import (
    StageName,
    first_stage,
    next_stage,
    parse_stage,
    stage_ordinal,
)
from enliterator.intake.scanner import SourceScanner
from enliterator.logging.context import set_run_context, set_stage_context
from enliterator.pipeline.executor import BaseExecutor, InlineExecutor
from enliterator.pipeline.policy import AdvancementPolicy
from enliterator.pipeline.processor import StageServices
from enliterator.pipeline.reconcile import (
    ABORTED_NOTE,
    count_stage,
    derive_batch_status,
    outcome_from_counts,
)
from enliterator.pipeline.registry import StageRegistry

logger = logging.getLogger(__name__)

MAX_ERROR_DETAILS = 20
STATUS_ACTIVITY_ENTRIES = 10


class StatusReport(BaseModel):
    """Operator-facing view of a run and its batch."""

    run_id: str
    batch_id: str
    batch_name: str
    run_status: RunStatus
    batch_status: str
    stage: StageName | None = None
    stage_ordinal: int = 0
    stage_statuses: dict[str, str] = Field(default_factory=dict)
    metrics: dict[str, dict[str, Any]] = Field(default_factory=dict)
    decisions: dict[str, str] = Field(default_factory=dict)
    error_summary: str | None = None
    stale_since: datetime | None = None
    last_progress_at: datetime | None = None
    resume_count: int = 0
    can_resume: bool = False
    duration_s: float = 0.0
    progress_pct: int = 0
    literacy_score: float | None = None
    recommended_command: str | None = None
    activity: list[ActivityEntry] = Field(default_factory=list)


class PipelineOrchestrator:
    """State machine over the ordered stage list.

    Args:
        services: Store, graph store, embedder and capabilities shared by
            every stage processor.
        registry: Stage processor classes (loaded from config if None).
        executor: Where stages run (inline by default).
        policy: Advancement policy (thresholds from settings if None).
    """

    def __init__(
        self,
        services: StageServices,
        registry: StageRegistry | None = None,
        executor: BaseExecutor | None = None,
        policy: AdvancementPolicy | None = None,
    ) -> None:
        self.services = services
        self.settings: Settings = services.settings
        self.store = services.store
        self.registry = registry or StageRegistry().load_all()
        self.executor = executor or InlineExecutor()
        self.executor.bind(self.execute_stage)
        self.policy = policy or AdvancementPolicy(self.settings)

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    async def create_batch(
        self,
        name: str,
        sources: Iterable[str | Path] = (),
        drafts: Iterable[ItemDraft] = (),
        source_type: str = "mixed",
        recursive: bool = True,
    ) -> Batch:
        """Create a batch with one item per discovered file or draft."""
        all_drafts = [*SourceScanner().scan(sources, recursive=recursive), *drafts]
        batch = Batch(name=name, source_type=source_type)
        items = [
            Item(
                batch_id=batch.id,
                ordinal=ordinal,
                source_path=draft.source_path,
                content=draft.content or "",
                media_type=draft.media_type or MediaType.UNKNOWN,
                metadata=dict(draft.metadata),
            )
            for ordinal, draft in enumerate(all_drafts, start=1)
        ]
        await self.store.create_batch(batch, items)
        logger.info("Created batch %s (%s) with %d items", batch.id, name, len(items))
        return batch

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def start_run(self, batch_id: str, auto_advance: bool | None = None) -> PipelineRun:
        """Create a run for the batch and drive the first stage.

        Raises:
            NotFoundError: Unknown batch.
            RunConflictError: The batch already has a non-terminal run.
        """
        await self.store.get_batch(batch_id)
        run = PipelineRun(
            batch_id=batch_id,
            current_stage=first_stage(),
            auto_advance=self.settings.auto_advance if auto_advance is None else auto_advance,
            started_at=utcnow(),
        )
        await self.store.create_run(run)
        set_run_context(batch_id, run.id)
        logger.info("Started run %s for batch %s", run.id, batch_id)

        await self.executor.enqueue(first_stage(), run.id)
        return await self.store.get_run(run.id)

    async def execute_stage(self, stage: StageName, run_id: str) -> None:
        """Run one stage for a run, record the decision and chain onward."""
        run = await self.store.get_run(run_id)
        if run.is_terminal:
            logger.info("Run %s is %s; stage %s not executed", run_id, run.status.value, stage.value)
            return
        batch = await self.store.get_batch(run.batch_id)
        set_run_context(batch.id, run.id)

        if run.pause_requested:
            run.status = RunStatus.PAUSED
            run.log_activity("paused", stage, "before stage start")
            await self._save_run(run)
            logger.info("Run %s paused before %s", run_id, stage.value)
            return

        started_at = utcnow()
        run.status = RunStatus.RUNNING
        run.current_stage = stage
        run.stage_statuses[stage] = "running"
        run.stage_started_at = started_at
        run.last_progress_at = started_at
        run.stale_since = None
        run.error_summary = None
        run.log_activity("started", stage)
        await self._save_run(run)

        batch.current_stage = stage
        batch.decisions.pop(stage, None)
        await self._save_batch(batch)

        processor = self.registry.create(stage, self.services)
        try:
            outcome = await processor.run(batch, run, on_progress=self._progress_callback(run_id))
        except Exception as e:
            await self._abort_stage(run, batch, stage, e)
            return
        finally:
            set_stage_context(None)

        await self._record_outcome(run, batch, outcome, started_at)

    async def _record_outcome(
        self, run: PipelineRun, batch: Batch, outcome: StageOutcome, started_at: datetime
    ) -> None:
        stage = outcome.stage
        decision = self.policy.decide(outcome)
        thresholds = self.policy.thresholds_for(stage)
        batch.metrics[stage] = StageMetrics.from_outcome(outcome, started_at)
        batch.decisions[stage] = DecisionRecord(decision=decision, source="policy")
        run.stage_durations[stage] = outcome.duration_s
        run.log_activity("decision", stage, f"{decision.value} {outcome.counts()}")
        logger.info(
            "Stage %s decision: %s", stage.value, decision.value,
            extra={"data": {**outcome.counts(), "decision": decision.value}},
        )

        if decision == StageDecision.FAIL:
            run.status = RunStatus.FAILED
            run.stage_statuses[stage] = "failed"
            run.error_summary = (
                f"{stage.value}: {outcome.failed}/{outcome.total} items failed "
                f"(max ratio {thresholds.max_failed_ratio:.2f})"
            )
            run.error_details = await self._failed_item_details(batch.id, stage)
        elif decision == StageDecision.NEEDS_REVIEW:
            run.status = RunStatus.PAUSED
            run.stage_statuses[stage] = "needs_review"
            if outcome.gate is not None and not outcome.gate.passed:
                run.error_summary = outcome.gate.message
            else:
                run.error_summary = (
                    f"{stage.value}: {outcome.quarantined}/{outcome.total} items quarantined "
                    f"(max ratio {thresholds.max_quarantined_ratio:.2f})"
                )
        else:
            run.stage_statuses[stage] = "completed"

        await self._save_batch(batch)
        if decision == StageDecision.ADVANCE:
            await self._continue_after(run, stage)
        else:
            await self._save_run(run)
            logger.warning("Run %s halted at %s: %s", run.id, batch.status, run.error_summary)

    async def _continue_after(self, run: PipelineRun, stage: StageName) -> None:
        """Advance past a completed stage: finish, park, or chain."""
        nxt = next_stage(stage)
        if nxt is None:
            run.status = RunStatus.COMPLETED
            run.completed_at = utcnow()
            run.log_activity("completed", message=f"in {run.duration_so_far():.2f}s")
            await self._save_run(run)
            logger.info("Run %s completed in %.2fs", run.id, run.duration_so_far())
            return

        await self._save_run(run)
        if run.is_terminal:
            return
        if run.pause_requested or not run.auto_advance:
            run.status = RunStatus.PAUSED
            run.log_activity("paused", stage, "after stage")
            await self._save_run(run)
            logger.info("Run %s paused after %s", run.id, stage.value)
            return
        await self.executor.enqueue(nxt, run.id)

    async def _abort_stage(
        self, run: PipelineRun, batch: Batch, stage: StageName, error: Exception
    ) -> None:
        """Record a stage-level error: the invocation aborts, the run fails."""
        logger.error("Stage %s aborted: %s", stage.value, error, exc_info=True)
        message = f"{type(error).__name__}: {error}"
        batch.decisions[stage] = DecisionRecord(
            decision=StageDecision.FAIL, source="policy", note=f"{ABORTED_NOTE}: {message}"
        )
        await self._save_batch(batch)

        run.status = RunStatus.FAILED
        run.stage_statuses[stage] = "failed"
        run.error_summary = f"{stage.value} aborted: {message}"
        run.error_details = [{"stage": stage.value, "error_type": type(error).__name__,
                              "message": str(error)}]
        run.log_activity("aborted", stage, message)
        await self._save_run(run)

    async def _failed_item_details(self, batch_id: str, stage: StageName) -> list[dict[str, Any]]:
        items = await self.store.list_items(batch_id, stage, [ItemStatus.FAILED])
        return [
            {
                "item_id": i.id,
                "path": i.source_path,
                "error": i.record(stage).metadata.get("error", ""),
                "error_type": i.record(stage).metadata.get("error_type", ""),
            }
            for i in items[:MAX_ERROR_DETAILS]
        ]

    # ------------------------------------------------------------------
    # Operator actions
    # ------------------------------------------------------------------

    async def resume(self, run_id: str) -> PipelineRun:
        """Continue a paused, failed or stale run from persisted state.

        No-op on a completed run.

        Raises:
            InvalidResumeTarget: Run is cancelled, waiting for review, running
                normally, or out of resume attempts.
        """
        run = await self.store.get_run(run_id)
        set_run_context(run.batch_id, run.id)
        stage = run.current_stage or first_stage()
        stage_state = run.stage_statuses.get(stage)

        if run.status == RunStatus.COMPLETED:
            logger.info("Run %s already completed; resume is a no-op", run_id)
            return run
        if run.status == RunStatus.CANCELLED:
            raise InvalidResumeTarget(f"Run {run_id} is cancelled; start a new run instead")

        if run.status == RunStatus.PAUSED:
            if stage_state == "needs_review":
                raise InvalidResumeTarget(
                    f"Run {run_id} is waiting for review at {stage.value}; "
                    "approve quarantined items or force-advance"
                )
            target = next_stage(stage) if stage_state == "completed" else stage
        elif run.status == RunStatus.FAILED:
            if run.resume_count >= self.settings.max_resumes:
                raise InvalidResumeTarget(
                    f"Run {run_id} reached the resume limit ({self.settings.max_resumes})"
                )
            run.resume_count += 1
            await self._reset_items(run.batch_id, stage, [ItemStatus.FAILED, ItemStatus.IN_PROGRESS])
            target = stage
        else:
            if run.stale_since is None:
                raise InvalidResumeTarget(f"Run {run_id} is running and not flagged stale")
            run.resume_count += 1
            await self._reset_items(run.batch_id, stage, [ItemStatus.IN_PROGRESS])
            target = stage

        run.pause_requested = False
        run.error_summary = None
        run.stale_since = None
        if target is None:
            run.status = RunStatus.COMPLETED
            run.completed_at = utcnow()
            await self.store.save_run(run)
            return run

        run.log_activity("resumed", target, f"resume #{run.resume_count}")
        run.status = RunStatus.RUNNING
        await self.store.save_run(run)
        logger.info("Resuming run %s at %s (resume #%d)", run_id, target.value, run.resume_count)
        await self.executor.enqueue(target, run.id)
        return await self.store.get_run(run.id)

    async def force_advance(self, run_id: str, note: str = "") -> PipelineRun:
        """Override a needs_review decision and continue with the next stage.

        Raises:
            InvalidResumeTarget: The current stage is not waiting for review.
        """
        run = await self.store.get_run(run_id)
        batch = await self.store.get_batch(run.batch_id)
        set_run_context(batch.id, run.id)
        stage = run.current_stage
        if (
            stage is None
            or run.status != RunStatus.PAUSED
            or batch.latest_decision(stage) != StageDecision.NEEDS_REVIEW
        ):
            raise InvalidResumeTarget(
                f"Run {run_id} has no stage waiting for review (status {run.status.value})"
            )

        batch.decisions[stage] = DecisionRecord(
            decision=StageDecision.ADVANCE, source="override", note=note
        )
        await self._save_batch(batch)
        logger.warning("Stage %s force-advanced by operator", stage.value)

        run.stage_statuses[stage] = "completed"
        run.error_summary = None
        run.pause_requested = False
        run.log_activity("force_advanced", stage, note)
        run.status = RunStatus.RUNNING
        await self.store.save_run(run)
        await self._continue_after(run, stage)
        return await self.store.get_run(run.id)

    async def pause(self, run_id: str) -> PipelineRun:
        """Request a pause; takes effect when the current stage reports."""
        run = await self.store.get_run(run_id)
        if run.is_terminal:
            raise InvalidResumeTarget(f"Run {run_id} is {run.status.value}")
        run.pause_requested = True
        run.log_activity("pause_requested", run.current_stage)
        await self.store.save_run(run)
        logger.info("Pause requested for run %s", run_id)
        return run

    async def cancel(self, run_id: str) -> PipelineRun:
        """Abandon a run. Cancelled runs are kept for audit."""
        run = await self.store.get_run(run_id)
        if run.status == RunStatus.CANCELLED:
            return run
        if run.status == RunStatus.COMPLETED:
            raise InvalidResumeTarget(f"Run {run_id} is already completed")
        run.status = RunStatus.CANCELLED
        run.pause_requested = False
        run.completed_at = utcnow()
        run.log_activity("cancelled", run.current_stage)
        await self.store.save_run(run)
        logger.info("Run %s cancelled", run_id)
        return run

    async def approve_quarantined(
        self,
        batch_id: str,
        stage: StageName | str,
        item_ids: Iterable[str] | None = None,
        note: str = "",
    ) -> list[str]:
        """Mark quarantined items of the batch's current stage as succeeded.

        The stage processor's after_approval() hook runs first (the lexicon
        stage re-runs deduplication), then the stage is re-evaluated; if the
        policy now advances, a paused run can be resumed into the next stage.

        Returns:
            Ids of the approved items.
        """
        stage = parse_stage(stage)
        batch = await self.store.get_batch(batch_id)
        if batch.current_stage != stage:
            raise InvalidResumeTarget(
                f"Batch {batch_id} is at {batch.current_stage.value if batch.current_stage else 'pending'}, "
                f"not {stage.value}"
            )

        wanted = set(item_ids) if item_ids is not None else None
        approved: list[str] = []
        for item in await self.store.list_items(batch_id, stage, [ItemStatus.QUARANTINED]):
            if wanted is not None and item.id not in wanted:
                continue
            record = item.record(stage)
            record.status = ItemStatus.SUCCEEDED
            record.metadata["manual_approval"] = {
                "approved_at": utcnow().isoformat(),
                "note": note,
                "confidence": record.metadata.get("confidence"),
            }
            record.updated_at = utcnow()
            await self.store.update_item_stage(item.id, stage, record)
            approved.append(item.id)
        logger.info("Approved %d quarantined items at %s", len(approved), stage.value)
        if not approved:
            return approved

        processor = self.registry.create(stage, self.services)
        await processor.after_approval(batch, approved)
        if stage in batch.metrics:
            await self._reevaluate(batch, stage)
        else:
            await self._save_batch(batch)

        run = await self.store.active_run(batch_id)
        if run is not None:
            run.log_activity("approved", stage, f"{len(approved)} quarantined items")
            await self._save_run(run)
        return approved

    async def _reevaluate(self, batch: Batch, stage: StageName) -> None:
        metrics = batch.metrics[stage]
        counts = count_stage(await self.store.list_items(batch.id), stage)
        outcome = outcome_from_counts(stage, counts, metrics.gate)
        batch.metrics[stage] = metrics.model_copy(update=outcome.counts())

        record = batch.decisions.get(stage)
        if record is None or record.decision != StageDecision.NEEDS_REVIEW:
            await self._save_batch(batch)
            return

        decision = self.policy.decide(outcome)
        if decision != StageDecision.NEEDS_REVIEW:
            batch.decisions[stage] = DecisionRecord(
                decision=decision, source="policy", note="re-evaluated after manual approval"
            )
        await self._save_batch(batch)

        run = await self.store.active_run(batch.id)
        if run is None or run.current_stage != stage or decision == StageDecision.NEEDS_REVIEW:
            return
        if decision == StageDecision.ADVANCE:
            run.stage_statuses[stage] = "completed"
            run.error_summary = None
        else:
            run.status = RunStatus.FAILED
            run.stage_statuses[stage] = "failed"
        await self._save_run(run)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def status(self, run_id: str) -> StatusReport:
        run = await self.store.get_run(run_id)
        batch = await self.store.get_batch(run.batch_id)
        return StatusReport(
            run_id=run.id,
            batch_id=batch.id,
            batch_name=batch.name,
            run_status=run.status,
            batch_status=batch.status,
            stage=run.current_stage,
            stage_ordinal=stage_ordinal(run.current_stage) if run.current_stage else 0,
            stage_statuses={s.value: v for s, v in run.stage_statuses.items()},
            metrics={
                s.value: {**m.model_dump(include={"total", "succeeded", "quarantined",
                                                  "failed", "skipped", "duration_s"})}
                for s, m in batch.metrics.items()
            },
            decisions={s.value: d.decision.value for s, d in batch.decisions.items()},
            error_summary=run.error_summary,
            stale_since=run.stale_since,
            last_progress_at=run.last_progress_at,
            resume_count=run.resume_count,
            can_resume=run.status == RunStatus.FAILED and run.resume_count < self.settings.max_resumes,
            duration_s=run.duration_so_far(),
            progress_pct=run.progress_pct,
            literacy_score=batch.artifacts.get("literacy", {}).get("score"),
            recommended_command=recommended_command(run, batch),
            activity=run.activity[-STATUS_ACTIVITY_ENTRIES:],
        )

    async def latest_run(self, batch_id: str) -> PipelineRun:
        runs = await self.store.list_runs(batch_id)
        if not runs:
            raise NotFoundError(f"Batch {batch_id} has no runs")
        return max(runs, key=lambda r: r.created_at)

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def _progress_callback(self, run_id: str):
        async def on_progress() -> None:
            stored = await self.store.get_run(run_id)
            stored.last_progress_at = utcnow()
            stored.stale_since = None
            await self.store.save_run(stored)

        return on_progress

    async def _save_run(self, run: PipelineRun) -> None:
        """Save the in-memory run, keeping flags other callers set meanwhile."""
        stored = await self.store.get_run(run.id)
        if stored.status == RunStatus.CANCELLED:
            run.status = RunStatus.CANCELLED
            run.completed_at = stored.completed_at
        run.pause_requested = run.pause_requested or stored.pause_requested
        run.last_progress_at = max(run.last_progress_at, stored.last_progress_at)
        merged = run.activity + [e for e in stored.activity if e not in run.activity]
        run.activity = sorted(merged, key=lambda e: e.at)[-MAX_ACTIVITY_ENTRIES:]
        await self.store.save_run(run)

    async def _save_batch(self, batch: Batch) -> None:
        batch.status = derive_batch_status(batch)
        batch.updated_at = utcnow()
        await self.store.save_batch(batch)

    async def _reset_items(
        self, batch_id: str, stage: StageName, statuses: list[ItemStatus]
    ) -> int:
        """Put items of a stage back to pending, keeping their error history."""
        items = await self.store.list_items(batch_id, stage, statuses)
        for item in items:
            record = item.record(stage)
            history = list(record.metadata.get("previous_errors", []))
            history.append({
                "status": record.status.value,
                "error": record.metadata.get("error"),
                "error_type": record.metadata.get("error_type"),
                "attempts": record.attempts,
            })
            kept = {k: v for k, v in record.metadata.items() if k == "manual_approval"}
            record.status = ItemStatus.PENDING
            record.metadata = {**kept, "previous_errors": history}
            record.updated_at = utcnow()
            await self.store.update_item_stage(item.id, stage, record)
        if items:
            logger.info("Reset %d items of %s to pending", len(items), stage.value)
        return len(items)


def recommended_command(run: PipelineRun, batch: Batch) -> str | None:
    """CLI command an operator should run next, if any."""
    stage = run.current_stage
    if run.status == RunStatus.COMPLETED:
        return None
    if run.status == RunStatus.CANCELLED:
        return f"enliterator start {batch.id}"
    if run.status == RunStatus.FAILED:
        return f"enliterator resume {run.id}"
    if run.status == RunStatus.PAUSED:
        if stage is not None and run.stage_statuses.get(stage) == "needs_review":
            return f"enliterator approve {batch.id} --stage {stage.value}  (or: enliterator advance {run.id})"
        return f"enliterator resume {run.id}"
    if run.stale_since is not None:
        return f"enliterator resume {run.id}"
    return None
