# src/embeddings/hashing_embedder.py — v1
"""Deterministic feature-hashing embedder (EMBEDDING_PROVIDER=hashing).

Tokens and token bigrams are hashed into a fixed number of buckets with a
signed hash, then L2-normalised. Needs no model download, and the same
text always yields the same vector.
"""

from __future__ import annotations

import hashlib
import re

import numpy as np

from enliterator.embeddings.base_embedder import BaseEmbedder

_TOKEN = re.compile(r"[A-Za-z0-9_]+")


class HashingEmbedder(BaseEmbedder):
    """Signed feature hashing over unigrams and bigrams."""

    def __init__(self, dimensions: int = 256) -> None:
        if dimensions < 8:
            raise ValueError("dimensions must be >= 8")
        self._dimensions = dimensions

    def _vector(self, text: str) -> np.ndarray:
        vec = np.zeros(self._dimensions, dtype=np.float64)
        tokens = [t.lower() for t in _TOKEN.findall(text)]
        features = tokens + [f"{a} {b}" for a, b in zip(tokens, tokens[1:])]
        for feature in features:
            digest = hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest()
            value = int.from_bytes(digest, "little")
            sign = 1.0 if value & 1 else -1.0
            vec[(value >> 1) % self._dimensions] += sign
        norm = np.linalg.norm(vec)
        return vec / norm if norm > 0 else vec

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        matrix = np.vstack([self._vector(t) for t in texts])
        return matrix.round(6).tolist()

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def provider_name(self) -> str:
        return "hashing"

    @property
    def model_name(self) -> str:
        return f"hashing-{self._dimensions}"
