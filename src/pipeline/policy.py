# src/pipeline/policy.py — v1
"""Stage advancement policy.

decide() maps the aggregate outcome of one stage to advance, needs_review
or fail. It is stateless and identical for every stage; only the ratio
thresholds vary, resolved per stage from Settings.

Boundaries are strict: a ratio exactly equal to its threshold does not
trip it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from enliterator.core.models import StageDecision, StageOutcome
from enliterator.core.stages import StageName

if TYPE_CHECKING:
    from enliterator.config.settings import Settings


@dataclass(frozen=True)
class PolicyThresholds:
    max_failed_ratio: float = 0.10
    max_quarantined_ratio: float = 0.50


def decide(outcome: StageOutcome, thresholds: PolicyThresholds = PolicyThresholds()) -> StageDecision:
    """Return the advancement decision for a stage outcome.

    Order: empty population advances, then the failure ratio, then the
    quarantine ratio. A failed batch-level gate (literacy score) turns an
    otherwise passing stage into needs_review.
    """
    if outcome.total == 0:
        return StageDecision.ADVANCE
    if outcome.failed / outcome.total > thresholds.max_failed_ratio:
        return StageDecision.FAIL
    if outcome.quarantined / outcome.total > thresholds.max_quarantined_ratio:
        return StageDecision.NEEDS_REVIEW
    if outcome.gate is not None and not outcome.gate.passed:
        return StageDecision.NEEDS_REVIEW
    return StageDecision.ADVANCE


class AdvancementPolicy:
    """Resolves per-stage thresholds from settings and applies decide()."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._default = PolicyThresholds()
        self._overrides: dict[str, dict[str, float]] = {}
        if settings is not None:
            self._default = PolicyThresholds(
                max_failed_ratio=settings.policy_max_failed_ratio,
                max_quarantined_ratio=settings.policy_max_quarantined_ratio,
            )
            self._overrides = dict(settings.stage_policy_overrides)

    def thresholds_for(self, stage: StageName) -> PolicyThresholds:
        override = self._overrides.get(stage.value)
        if not override:
            return self._default
        return PolicyThresholds(
            max_failed_ratio=override.get("max_failed_ratio", self._default.max_failed_ratio),
            max_quarantined_ratio=override.get(
                "max_quarantined_ratio", self._default.max_quarantined_ratio
            ),
        )

    def decide(self, outcome: StageOutcome) -> StageDecision:
        return decide(outcome, self.thresholds_for(outcome.stage))
