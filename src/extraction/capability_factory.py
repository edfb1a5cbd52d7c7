# src/extraction/capability_factory.py — v1
"""Build the extraction capabilities selected by EXTRACTION_BACKEND."""

from __future__ import annotations

import logging

from enliterator.config.settings import Settings
from enliterator.extraction.base_capability import BaseExtractionCapability
from enliterator.extraction.entity_extractor import EntityExtractorCapability
from enliterator.extraction.rights_inference import RightsInferenceCapability
from enliterator.extraction.term_extractor import TermExtractorCapability

logger = logging.getLogger(__name__)

CAPABILITY_TASKS = ("rights_inference", "term_extractor", "entity_extractor")


def create_capabilities(settings: Settings) -> dict[str, BaseExtractionCapability]:
    """Return capability instances keyed by task name."""
    if settings.extraction_backend == "llm":
        from enliterator.extraction.llm_capability import LLMExtractionCapability
        from enliterator.llm.client_factory import create_llm_client

        client = create_llm_client(settings)
        logger.info("Using LLM extraction (%s:%s)", settings.llm_provider, settings.llm_model)
        return {
            task: LLMExtractionCapability(client, task, timeout_s=settings.llm_timeout_s)
            for task in CAPABILITY_TASKS
        }

    return {
        "rights_inference": RightsInferenceCapability(),
        "term_extractor": TermExtractorCapability(),
        "entity_extractor": EntityExtractorCapability(),
    }
