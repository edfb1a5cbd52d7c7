# src/llm/base_client.py — v1
"""Abstract LLM client used by the LLM-backed extraction capability."""

from __future__ import annotations

from abc import ABC, abstractmethod

from enliterator.llm.models import LLMResponse, Message


class BaseLLMClient(ABC):
    """Unified interface for LLM providers."""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 2048,
        temperature: float = 0.0,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Text completion. With ``json_mode`` the reply must be one JSON object."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (anthropic, openai)."""
