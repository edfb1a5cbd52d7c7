# src/embeddings/embedder_factory.py — v1
"""Factory: instantiate the embedding provider from configuration."""

from __future__ import annotations

from enliterator.config.settings import Settings
from enliterator.embeddings.base_embedder import BaseEmbedder


class UnsupportedEmbeddingProviderError(ValueError):
    """Raised when an embedding provider is not registered."""


def create_embedder(settings: Settings | None = None) -> BaseEmbedder:
    """Instantiate the configured embedder (hashing by default)."""
    if settings is None:
        from enliterator.embeddings.hashing_embedder import HashingEmbedder
        return HashingEmbedder()

    provider = settings.embedding_provider
    if provider == "hashing":
        from enliterator.embeddings.hashing_embedder import HashingEmbedder
        return HashingEmbedder(dimensions=settings.embedding_dimensions)

    if provider == "openai":
        from enliterator.embeddings.openai_embedder import OpenAIEmbedder
        return OpenAIEmbedder(
            model=settings.embedding_model,
            api_key=settings.openai_api_key or None,
            dimensions=settings.embedding_dimensions,
        )

    raise UnsupportedEmbeddingProviderError(
        f"Unsupported embedding provider: {provider!r}. Available: hashing, openai"
    )
