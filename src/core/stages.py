# src/core/stages.py — v1
"""Ordered stage table and the transition map between stages.

The orchestrator never hardcodes "what comes next": it asks this module.
Batch status strings (``<stage>_running`` etc.) are also built here so the
format lives in one place.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class StageName(str, Enum):
    """The nine pipeline stages, declared in execution order."""

    INTAKE = "intake"
    RIGHTS = "rights"
    LEXICON = "lexicon"
    POOLS = "pools"
    GRAPH = "graph"
    EMBEDDINGS = "embeddings"
    LITERACY = "literacy"
    DELIVERABLES = "deliverables"
    FINE_TUNE = "fine_tune"


@dataclass(frozen=True)
class StageDefinition:
    """Static description of one stage."""

    name: StageName
    ordinal: int
    description: str


STAGE_DEFINITIONS: tuple[StageDefinition, ...] = (
    StageDefinition(StageName.INTAKE, 1, "File discovery, hashing and content capture"),
    StageDefinition(StageName.RIGHTS, 2, "Rights inference and quarantine"),
    StageDefinition(StageName.LEXICON, 3, "Term extraction and canonical forms"),
    StageDefinition(StageName.POOLS, 4, "Entity and relation extraction"),
    StageDefinition(StageName.GRAPH, 5, "Knowledge graph assembly"),
    StageDefinition(StageName.EMBEDDINGS, 6, "Vector representations"),
    StageDefinition(StageName.LITERACY, 7, "Literacy scoring and gap analysis"),
    StageDefinition(StageName.DELIVERABLES, 8, "Export artifacts"),
    StageDefinition(StageName.FINE_TUNE, 9, "Fine-tuning dataset"),
)

STAGE_ORDER: tuple[StageName, ...] = tuple(d.name for d in STAGE_DEFINITIONS)

# stage -> next stage (None after the last one)
TRANSITIONS: dict[StageName, StageName | None] = {
    stage: (STAGE_ORDER[i + 1] if i + 1 < len(STAGE_ORDER) else None)
    for i, stage in enumerate(STAGE_ORDER)
}

_BY_NAME = {d.name: d for d in STAGE_DEFINITIONS}

BATCH_PENDING = "pending"
BATCH_COMPLETED = "completed"


def first_stage() -> StageName:
    return STAGE_ORDER[0]


def next_stage(stage: StageName) -> StageName | None:
    """Return the stage that follows ``stage``, or None at the end."""
    return TRANSITIONS[stage]


def previous_stage(stage: StageName) -> StageName | None:
    """Return the stage that precedes ``stage``, or None for the first."""
    idx = STAGE_ORDER.index(stage)
    return STAGE_ORDER[idx - 1] if idx > 0 else None


def stage_ordinal(stage: StageName) -> int:
    """1-based position of a stage."""
    return _BY_NAME[stage].ordinal


def stage_definition(stage: StageName) -> StageDefinition:
    return _BY_NAME[stage]


def parse_stage(value: str | StageName) -> StageName:
    """Parse a stage from its name or its 1-based ordinal.

    Raises:
        ValueError: If the value names no stage.
    """
    if isinstance(value, StageName):
        return value
    text = str(value).strip().lower()
    if text.isdigit():
        ordinal = int(text)
        for definition in STAGE_DEFINITIONS:
            if definition.ordinal == ordinal:
                return definition.name
        raise ValueError(f"No stage with ordinal {ordinal}")
    try:
        return StageName(text)
    except ValueError:
        raise ValueError(f"Unknown stage: {value!r}") from None


def batch_status(stage: StageName, phase: str) -> str:
    """Build a batch status string such as ``rights_needs_review``.

    Args:
        stage: Stage the batch is at.
        phase: One of running, completed, needs_review, failed.
    """
    if phase not in ("running", "completed", "needs_review", "failed"):
        raise ValueError(f"Unknown stage phase: {phase}")
    return f"{stage.value}_{phase}"
