# tests/unit/llm/test_client_factory.py — v1
"""Tests for llm/client_factory.py: provider registry and lazy SDK import."""

from __future__ import annotations

from enliterator.config.settings import Settings
from enliterator.llm.adapters.anthropic_adapter import AnthropicAdapter
from enliterator.llm.adapters.openai_adapter import OpenAIAdapter
from enliterator.llm.client_factory import create_llm_client


def _settings(**kw) -> Settings:
    return Settings(_env_file=None, store_backend="memory", **kw)


class TestCreateClient:
    def test_anthropic(self):
        client = create_llm_client(_settings(llm_provider="anthropic", llm_model="claude-x"))
        assert isinstance(client, AnthropicAdapter)
        assert client.provider_name == "anthropic"

    def test_openai(self):
        client = create_llm_client(_settings(llm_provider="openai", llm_model="gpt-x"))
        assert isinstance(client, OpenAIAdapter)
        assert client.provider_name == "openai"

    def test_sdk_not_imported_until_first_call(self):
        # Construction must succeed without the optional SDK installed.
        client = create_llm_client(_settings(llm_provider="anthropic"))
        assert client is not None
