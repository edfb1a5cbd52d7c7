# tests/unit/extraction/test_capability_factory.py — v1
"""Tests for extraction/capability_factory.py: backend selection."""

from __future__ import annotations

from enliterator.config.settings import Settings
from enliterator.extraction.capability_factory import CAPABILITY_TASKS, create_capabilities
from enliterator.extraction.llm_capability import LLMExtractionCapability
from enliterator.extraction.rights_inference import RightsInferenceCapability


class TestFactory:
    def test_heuristic_default(self, settings):
        caps = create_capabilities(settings)
        assert set(caps) == set(CAPABILITY_TASKS)
        assert isinstance(caps["rights_inference"], RightsInferenceCapability)

    def test_llm_backend(self):
        settings = Settings(
            _env_file=None, store_backend="memory", extraction_backend="llm",
            llm_provider="anthropic", anthropic_api_key="test-key",
        )
        caps = create_capabilities(settings)
        assert all(isinstance(c, LLMExtractionCapability) for c in caps.values())
        assert {c.name for c in caps.values()} == set(CAPABILITY_TASKS)
