# src/logging/context.py — v1
"""Contextual logging support: attach batch_id, run_id, stage, item_id to records.

The orchestrator sets batch/run context once per run, the stage processor
sets the stage, and per-item workers set the item. Context variables keep
concurrent item tasks from overwriting each other.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_batch_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "batch_id", default=None
)
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)
_item_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "item_id", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    batch_id: str | None = None
    run_id: str | None = None
    stage: str | None = None
    item_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        batch_id=_batch_id.get(),
        run_id=_run_id.get(),
        stage=_stage.get(),
        item_id=_item_id.get(),
    )


def set_run_context(batch_id: str, run_id: str | None) -> None:
    """Set run-level context (called when a run is driven)."""
    _batch_id.set(batch_id)
    _run_id.set(run_id)


def set_stage_context(stage: str | None) -> None:
    """Set the stage currently executing."""
    _stage.set(stage)
    _item_id.set(None)


def set_item_context(item_id: str | None) -> None:
    """Set the item a worker task is processing."""
    _item_id.set(item_id)


def clear_context() -> None:
    """Reset all context variables."""
    _batch_id.set(None)
    _run_id.set(None)
    _stage.set(None)
    _item_id.set(None)
