# src/extraction/base_capability.py — v1
"""Abstract extraction capability interface.

A capability takes item content plus structured context and returns a
structured result with a confidence in [0, 1]. It may raise
TransientError (retried by the stage) or FatalError (item fails at once).
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field, field_validator


class TransientError(Exception):
    """Retryable capability failure (timeout, rate limit, 5xx)."""


class FatalError(Exception):
    """Non-retryable capability failure (malformed input, bad response)."""


class ExtractionResponse(BaseModel):
    """Normalized response from any capability."""

    result: dict[str, Any] = Field(default_factory=dict)
    confidence: float

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        v = float(v)
        if not math.isfinite(v):
            raise ValueError(f"confidence must be a finite number, got {v}")
        return max(0.0, min(1.0, v))


class BaseExtractionCapability(ABC):
    """Unified interface for heuristic and LLM-backed extractors."""

    @abstractmethod
    async def extract(self, content: str, context: dict[str, Any]) -> ExtractionResponse:
        """Extract structured output from content."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Capability identifier (used in logs and item metadata)."""
