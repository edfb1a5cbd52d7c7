# src/embeddings/base_embedder.py — v1
"""Abstract embeddings interface."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseEmbedder(ABC):
    """Unified interface for embedding providers."""

    @abstractmethod
    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts into vectors."""

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Output vector dimensions."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier."""
