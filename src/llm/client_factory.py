# src/llm/client_factory.py — v1
"""Instantiate an LLM client from a provider name."""

from __future__ import annotations

import importlib
import logging

from enliterator.config.settings import Settings
from enliterator.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)

# provider name -> adapter class path (imported lazily)
_PROVIDER_REGISTRY: dict[str, str] = {
    "anthropic": "enliterator.llm.adapters.anthropic_adapter.AnthropicAdapter",
    "openai": "enliterator.llm.adapters.openai_adapter.OpenAIAdapter",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_llm_client(settings: Settings) -> BaseLLMClient:
    """Build the client selected by LLM_PROVIDER / LLM_MODEL.

    Raises:
        UnsupportedProviderError: If the provider is not registered.
    """
    provider = settings.llm_provider
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )
    api_key = settings.anthropic_api_key if provider == "anthropic" else settings.openai_api_key

    module_path, class_name = _PROVIDER_REGISTRY[provider].rsplit(".", 1)
    adapter_cls = getattr(importlib.import_module(module_path), class_name)
    logger.debug("Creating LLM client: provider=%s, model=%s", provider, settings.llm_model)
    return adapter_cls(model=settings.llm_model, api_key=api_key or None)
