# src/llm/models.py — v1
"""LLM message and response types."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel


class Message(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class LLMResponse(BaseModel):
    """Normalized response from any provider."""

    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str
    provider: str
    latency_ms: int = 0
    raw_response: Any = None
