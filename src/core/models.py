# src/core/models.py — v1
"""Core pipeline types: Item, Batch, PipelineRun and stage value objects.

Items carry one StageRecord per stage. Batches own aggregate metrics and
the latest advancement decision per stage. StageOutcome and ItemResult are
immutable values handed from the stage processor to the advancement policy
and then to the orchestrator.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from enliterator.core.stages import StageName


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex[:12]


# === ENUMS ===


class ItemStatus(str, Enum):
    """Per-item, per-stage status."""

    NOT_STARTED = "not_started"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    QUARANTINED = "quarantined"
    FAILED = "failed"
    SKIPPED = "skipped"


TERMINAL_ITEM_STATUSES = frozenset(
    {ItemStatus.SUCCEEDED, ItemStatus.QUARANTINED, ItemStatus.FAILED, ItemStatus.SKIPPED}
)
OPEN_ITEM_STATUSES = frozenset({ItemStatus.NOT_STARTED, ItemStatus.PENDING})


class StageDecision(str, Enum):
    """Advancement policy verdict for one stage."""

    ADVANCE = "advance"
    NEEDS_REVIEW = "needs_review"
    FAIL = "fail"


class RunStatus(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_RUN_STATUSES = frozenset({RunStatus.COMPLETED, RunStatus.CANCELLED})


class MediaType(str, Enum):
    CODE = "code"
    TEXT = "text"
    CONFIG = "config"
    DATA = "data"
    DOCUMENT = "document"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    BINARY = "binary"
    UNKNOWN = "unknown"


READABLE_MEDIA_TYPES = frozenset(
    {MediaType.CODE, MediaType.TEXT, MediaType.CONFIG, MediaType.DATA}
)


# === ITEM RESULTS (tagged variant) ===


class Succeeded(BaseModel):
    model_config = {"frozen": True}

    kind: Literal["succeeded"] = "succeeded"
    confidence: float = 1.0
    metadata: dict[str, Any] = Field(default_factory=dict)


class Quarantined(BaseModel):
    model_config = {"frozen": True}

    kind: Literal["quarantined"] = "quarantined"
    confidence: float
    reason: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class Failed(BaseModel):
    model_config = {"frozen": True}

    kind: Literal["failed"] = "failed"
    error: str
    error_type: str = "fatal"
    attempts: int = 1
    metadata: dict[str, Any] = Field(default_factory=dict)


class Skipped(BaseModel):
    """Item processed correctly but added nothing new.

    ``contributed`` keeps the item in the next stage's population even
    though it was skipped here (e.g. no text to embed).
    """

    model_config = {"frozen": True}

    kind: Literal["skipped"] = "skipped"
    reason: str
    contributed: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)


ItemResult = Annotated[
    Union[Succeeded, Quarantined, Failed, Skipped], Field(discriminator="kind")
]

RESULT_STATUS: dict[str, ItemStatus] = {
    "succeeded": ItemStatus.SUCCEEDED,
    "quarantined": ItemStatus.QUARANTINED,
    "failed": ItemStatus.FAILED,
    "skipped": ItemStatus.SKIPPED,
}


def result_status(result: Succeeded | Quarantined | Failed | Skipped) -> ItemStatus:
    return RESULT_STATUS[result.kind]


def result_metadata(result: Succeeded | Quarantined | Failed | Skipped) -> dict[str, Any]:
    """Flatten a result into the metadata persisted on the item."""
    data = dict(result.metadata)
    if isinstance(result, (Succeeded, Quarantined)):
        data["confidence"] = result.confidence
    if isinstance(result, Quarantined):
        data["quarantine_reason"] = result.reason
    if isinstance(result, Failed):
        data["error"] = result.error
        data["error_type"] = result.error_type
        data["attempts"] = result.attempts
    if isinstance(result, Skipped):
        data["skip_reason"] = result.reason
        data["contributed"] = result.contributed
    return data


# === ITEM ===


class StageRecord(BaseModel):
    """Status of one item at one stage plus the reason it was set."""

    status: ItemStatus = ItemStatus.NOT_STARTED
    metadata: dict[str, Any] = Field(default_factory=dict)
    attempts: int = 0
    updated_at: datetime | None = None

    @property
    def contributed(self) -> bool:
        """True if a skipped record still feeds the next stage."""
        return self.status == ItemStatus.SKIPPED and bool(
            self.metadata.get("contributed", False)
        )


def _empty_stages() -> dict[StageName, StageRecord]:
    return {stage: StageRecord() for stage in StageName}


class Item(BaseModel):
    """One ingested document with independent per-stage status."""

    id: str = Field(default_factory=new_id)
    batch_id: str
    ordinal: int = 0
    source_path: str = ""
    content: str = ""
    content_sample: str = ""
    media_type: MediaType = MediaType.UNKNOWN
    content_hash: str | None = None
    size_bytes: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)
    stages: dict[StageName, StageRecord] = Field(default_factory=_empty_stages)
    created_at: datetime = Field(default_factory=utcnow)

    def record(self, stage: StageName) -> StageRecord:
        if stage not in self.stages:
            self.stages[stage] = StageRecord()
        return self.stages[stage]

    def status(self, stage: StageName) -> ItemStatus:
        return self.record(stage).status

    @property
    def label(self) -> str:
        return self.source_path or self.id


class ItemDraft(BaseModel):
    """Input used to create an Item: either a path or inline content."""

    source_path: str = ""
    content: str | None = None
    media_type: MediaType | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


# === STAGE OUTCOME ===


class GateResult(BaseModel):
    """Batch-level quality gate evaluated by a stage (literacy score)."""

    model_config = {"frozen": True}

    name: str
    passed: bool
    score: float | None = None
    threshold: float | None = None
    message: str = ""


class StageOutcome(BaseModel):
    """Immutable aggregate of a stage invocation.

    Counts are per-item statuses over the stage population; ``attempted``
    is how many items this invocation processed.
    """

    model_config = {"frozen": True}

    stage: StageName
    total: int = 0
    succeeded: int = 0
    quarantined: int = 0
    failed: int = 0
    skipped: int = 0
    attempted: int = 0
    duration_s: float = 0.0
    gate: GateResult | None = None

    def counts(self) -> dict[str, int]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "quarantined": self.quarantined,
            "failed": self.failed,
            "skipped": self.skipped,
        }


class DecisionRecord(BaseModel):
    decision: StageDecision
    source: Literal["policy", "override"] = "policy"
    decided_at: datetime = Field(default_factory=utcnow)
    note: str = ""


class StageMetrics(BaseModel):
    """Metrics snapshot stored on the batch after each stage invocation."""

    total: int = 0
    succeeded: int = 0
    quarantined: int = 0
    failed: int = 0
    skipped: int = 0
    attempted: int = 0
    duration_s: float = 0.0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    gate: GateResult | None = None

    @classmethod
    def from_outcome(
        cls, outcome: StageOutcome, started_at: datetime | None = None
    ) -> StageMetrics:
        return cls(
            **outcome.counts(),
            attempted=outcome.attempted,
            duration_s=outcome.duration_s,
            started_at=started_at,
            completed_at=utcnow(),
            gate=outcome.gate,
        )


# === BATCH ===


class Batch(BaseModel):
    """A named set of items moving through the pipeline together."""

    id: str = Field(default_factory=new_id)
    name: str
    source_type: str = "mixed"
    status: str = "pending"
    current_stage: StageName | None = None
    metrics: dict[StageName, StageMetrics] = Field(default_factory=dict)
    decisions: dict[StageName, DecisionRecord] = Field(default_factory=dict)
    artifacts: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def latest_decision(self, stage: StageName) -> StageDecision | None:
        record = self.decisions.get(stage)
        return record.decision if record else None


# === PIPELINE RUN ===


MAX_ACTIVITY_ENTRIES = 50


class ActivityEntry(BaseModel):
    """One line of a run's activity trail."""

    model_config = {"frozen": True}

    at: datetime = Field(default_factory=utcnow)
    event: str
    stage: StageName | None = None
    message: str = ""

    def render(self) -> str:
        where = f" [{self.stage.value}]" if self.stage else ""
        text = f" {self.message}" if self.message else ""
        return f"{self.at.isoformat(timespec='seconds')}{where} {self.event}{text}"


class PipelineRun(BaseModel):
    """One end-to-end execution attempt of a batch."""

    id: str = Field(default_factory=new_id)
    batch_id: str
    status: RunStatus = RunStatus.RUNNING
    current_stage: StageName | None = None
    stage_statuses: dict[StageName, str] = Field(default_factory=dict)
    stage_durations: dict[StageName, float] = Field(default_factory=dict)
    stage_started_at: datetime | None = None
    error_summary: str | None = None
    error_details: list[dict[str, Any]] = Field(default_factory=list)
    auto_advance: bool = True
    pause_requested: bool = False
    resume_count: int = 0
    stale_since: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    last_progress_at: datetime = Field(default_factory=utcnow)
    activity: list[ActivityEntry] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RUN_STATUSES

    @property
    def stage_ordinal(self) -> int:
        from enliterator.core.stages import stage_ordinal

        return stage_ordinal(self.current_stage) if self.current_stage else 0

    def duration_so_far(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.completed_at or utcnow()
        return round((end - self.started_at).total_seconds(), 2)

    def log_activity(self, event: str, stage: StageName | None = None, message: str = "") -> None:
        """Append to the activity trail, keeping the newest MAX_ACTIVITY_ENTRIES."""
        self.activity.append(ActivityEntry(event=event, stage=stage, message=message))
        del self.activity[:-MAX_ACTIVITY_ENTRIES]

    @property
    def progress_pct(self) -> int:
        """Share of the pipeline's stages completed, as a whole percentage."""
        from enliterator.core.stages import STAGE_ORDER

        done = sum(1 for state in self.stage_statuses.values() if state == "completed")
        return round(done / len(STAGE_ORDER) * 100)
