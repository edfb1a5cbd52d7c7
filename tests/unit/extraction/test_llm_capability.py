# tests/unit/extraction/test_llm_capability.py — v1
"""Tests for extraction/llm_capability.py: prompts, parsing, error classes."""

from __future__ import annotations

import asyncio
import json

import pytest
from pydantic import ValidationError

from enliterator.extraction.base_capability import ExtractionResponse, FatalError, TransientError
from enliterator.extraction.llm_capability import (
    LLMExtractionCapability,
    classify_error,
    parse_reply,
)
from enliterator.llm.base_client import BaseLLMClient
from enliterator.llm.models import LLMResponse, Message


class FakeClient(BaseLLMClient):
    def __init__(self, reply: str = "", error: Exception | None = None, delay: float = 0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls: list[tuple[list[Message], str | None, bool]] = []

    async def complete(self, messages, system=None, max_tokens=2048, temperature=0.0, json_mode=False):
        self.calls.append((messages, system, json_mode))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return LLMResponse(content=self.reply, model="fake", provider="fake")

    @property
    def provider_name(self) -> str:
        return "fake"


class TestParseReply:
    def test_plain_json(self):
        response = parse_reply('{"result": {"terms": []}, "confidence": 0.8}')
        assert response.result == {"terms": []}
        assert response.confidence == 0.8

    def test_code_fence(self):
        response = parse_reply('```json\n{"result": {"a": 1}, "confidence": 2}\n```')
        assert response.result == {"a": 1}
        assert response.confidence == 1.0

    def test_not_json(self):
        with pytest.raises(FatalError, match="not valid JSON"):
            parse_reply("sure, here you go")

    def test_missing_result(self):
        with pytest.raises(FatalError, match="result"):
            parse_reply('{"confidence": 0.5}')

    def test_bad_confidence(self):
        with pytest.raises(FatalError, match="confidence"):
            parse_reply('{"result": {}, "confidence": "high"}')

    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_confidence(self, literal):
        with pytest.raises(FatalError, match="non-finite"):
            parse_reply('{"result": {}, "confidence": ' + literal + "}")

    def test_response_rejects_nan(self):
        with pytest.raises(ValidationError):
            ExtractionResponse(result={}, confidence=float("nan"))
        assert ExtractionResponse(confidence=1.5).confidence == 1.0


class TestClassifyError:
    @pytest.mark.parametrize("error,kind", [
        (RuntimeError("HTTP 429 Too Many Requests"), "rate_limit"),
        (TimeoutError("read"), "timeout"),
        (RuntimeError("503 Service Unavailable"), "server_error"),
        (RuntimeError("Overloaded"), "server_error"),
        (ValueError("invalid api key"), "unknown"),
    ])
    def test_kinds(self, error, kind):
        assert classify_error(error) == kind


class TestCapability:
    def test_unknown_task(self):
        with pytest.raises(ValueError):
            LLMExtractionCapability(FakeClient(), "summarize")

    @pytest.mark.asyncio
    async def test_success(self):
        reply = json.dumps({"result": {"license": "cc0"}, "confidence": 0.9})
        client = FakeClient(reply)
        cap = LLMExtractionCapability(client, "rights_inference")
        response = await cap.extract("doc body", {"path": "a.md"})
        assert cap.name == "rights_inference"
        assert response.result["license"] == "cc0"
        messages, system, json_mode = client.calls[0]
        assert json_mode is True
        assert "a.md" in messages[0].content
        assert "confidence" in system

    @pytest.mark.asyncio
    async def test_empty_content_is_fatal(self):
        with pytest.raises(FatalError):
            await LLMExtractionCapability(FakeClient(), "term_extractor").extract("", {})

    @pytest.mark.asyncio
    async def test_rate_limit_is_transient(self):
        cap = LLMExtractionCapability(FakeClient(error=RuntimeError("429 rate limited")), "term_extractor")
        with pytest.raises(TransientError, match="rate_limit"):
            await cap.extract("text", {})

    @pytest.mark.asyncio
    async def test_unknown_error_is_fatal(self):
        cap = LLMExtractionCapability(FakeClient(error=ValueError("bad request")), "term_extractor")
        with pytest.raises(FatalError, match="ValueError"):
            await cap.extract("text", {})

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self):
        cap = LLMExtractionCapability(FakeClient("{}", delay=1.0), "entity_extractor", timeout_s=0.01)
        with pytest.raises(TransientError, match="timed out"):
            await cap.extract("text", {})
