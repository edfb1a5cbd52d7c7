# src/core/errors.py — v1
"""Exceptions shared across stages, stores and the orchestrator.

Item-level problems never surface as these: they are captured as Failed
results inside the stage processor. Everything here is stage-level or
orchestrator-level.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for pipeline control errors."""


class NotFoundError(PipelineError):
    """Batch, item or run does not exist."""


class StageInvariantError(PipelineError):
    """Cross-stage invariant violated; the whole stage invocation aborts."""


class SchemaOrderError(StageInvariantError):
    """Graph data write attempted before the schema transaction committed."""


class RunConflictError(PipelineError):
    """A non-terminal run already exists for the batch."""

    def __init__(self, batch_id: str, active_run_id: str | None = None):
        self.batch_id = batch_id
        self.active_run_id = active_run_id
        detail = f" (active run {active_run_id})" if active_run_id else ""
        super().__init__(f"Batch {batch_id} already has an active pipeline run{detail}")


class InvalidResumeTarget(PipelineError):
    """Resume or force-advance requested on a run in the wrong state."""
