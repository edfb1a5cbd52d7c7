# src/extraction/llm_capability.py — v1
"""LLM-backed extraction capability.

Sends the item content with a task prompt and expects a JSON object
``{"result": {...}, "confidence": <0..1>}``. Provider exceptions are
classified: rate limits, timeouts and 5xx become TransientError, anything
else (including unparseable replies) becomes FatalError.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from typing import Any

from enliterator.extraction.base_capability import (
    BaseExtractionCapability,
    ExtractionResponse,
    FatalError,
    TransientError,
)
from enliterator.llm.base_client import BaseLLMClient
from enliterator.llm.models import Message

logger = logging.getLogger(__name__)

MAX_CONTENT_CHARS = 12_000

TASK_PROMPTS: dict[str, str] = {
    "rights_inference": (
        "Infer the rights and provenance of the document. Return result with keys "
        "license, consent (explicit_consent|implicit_consent|no_consent|unknown), owner, "
        "collection_method, publishable (bool), trainable (bool)."
    ),
    "term_extractor": (
        "Extract the domain terms of the document. Return result with key terms: a list "
        "of objects {canonical, surface_forms, term_type (concept|identifier|setting)}."
    ),
    "entity_extractor": (
        "Extract entities and relations. Entities are {key, label, pool_type} where "
        "pool_type is one of idea, manifest, experience, practical, evolutionary. "
        "Relations are {source, target, verb} between entity keys. Prefer the terms "
        "listed in the context."
    ),
}

_SYSTEM = (
    "You are a careful knowledge extraction service. Always return a JSON object "
    'with two keys: "result" (object) and "confidence" (number between 0 and 1).'
)


def classify_error(error: Exception) -> str:
    """Classify a provider exception into rate_limit, timeout, server_error or unknown."""
    msg = str(error).lower()
    name = type(error).__name__.lower()

    if "429" in msg or "rate" in msg or "ratelimit" in name:
        return "rate_limit"
    if "timeout" in name or "timeout" in msg:
        return "timeout"
    if any(c in msg for c in ("500", "502", "503", "504", "overloaded")):
        return "server_error"
    return "unknown"


class LLMExtractionCapability(BaseExtractionCapability):
    """Run one extraction task through an LLM client."""

    def __init__(self, client: BaseLLMClient, task: str, timeout_s: float = 60.0) -> None:
        if task not in TASK_PROMPTS:
            raise ValueError(f"Unknown extraction task: {task}")
        self._client = client
        self._task = task
        self._timeout_s = timeout_s

    @property
    def name(self) -> str:
        return self._task

    async def extract(self, content: str, context: dict[str, Any]) -> ExtractionResponse:
        if not content:
            raise FatalError("No content to send to the LLM")

        prompt = (
            f"{TASK_PROMPTS[self._task]}\n\n"
            f"Context:\n{json.dumps(context, default=str)[:4000]}\n\n"
            f"Document:\n{content[:MAX_CONTENT_CHARS]}"
        )
        try:
            response = await asyncio.wait_for(
                self._client.complete(
                    [Message(role="user", content=prompt)], system=_SYSTEM, json_mode=True
                ),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise TransientError(f"{self._task}: LLM call timed out after {self._timeout_s}s") from e
        except Exception as e:
            kind = classify_error(e)
            if kind == "unknown":
                raise FatalError(f"{self._task}: {type(e).__name__}: {e}") from e
            raise TransientError(f"{self._task}: {kind}: {e}") from e

        return parse_reply(response.content)


def parse_reply(text: str) -> ExtractionResponse:
    """Parse a ``{"result", "confidence"}`` reply, tolerating code fences.

    Raises:
        FatalError: If the reply is not a JSON object of that shape.
    """
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        cleaned = cleaned[cleaned.find("{"):]
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise FatalError(f"LLM reply is not valid JSON: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("result"), dict):
        raise FatalError("LLM reply lacks a 'result' object")
    try:
        confidence = float(data.get("confidence", 0.0))
    except (TypeError, ValueError) as e:
        raise FatalError(f"LLM reply has a non-numeric confidence: {e}") from e
    if not math.isfinite(confidence):
        raise FatalError(f"LLM reply has a non-finite confidence: {confidence}")
    return ExtractionResponse(result=data["result"], confidence=confidence)
