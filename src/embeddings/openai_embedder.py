# src/embeddings/openai_embedder.py — v1
"""OpenAI embedding adapter (EMBEDDING_PROVIDER=openai).

Models: text-embedding-3-small, text-embedding-3-large.
"""

from __future__ import annotations

import logging

from enliterator.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)


class OpenAIEmbedder(BaseEmbedder):
    """Embeddings via OpenAI API."""

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: str | None = None,
        dimensions: int = 256,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._dimensions = dimensions
        self.__client = None

    @property
    def _client(self):
        if self.__client is None:
            try:
                import openai
            except ImportError as e:
                raise ImportError(
                    "openai package required: pip install enliterator[openai]"
                ) from e
            self.__client = openai.AsyncOpenAI(api_key=self._api_key or "")
        return self.__client

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        response = await self._client.embeddings.create(
            input=texts, model=self._model, dimensions=self._dimensions
        )
        return [item.embedding for item in response.data]

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._model
