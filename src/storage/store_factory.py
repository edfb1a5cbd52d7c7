# src/storage/store_factory.py — v1
"""Factory for pipeline store instantiation."""

from __future__ import annotations

from enliterator.config.settings import Settings
from enliterator.storage.base_store import BasePipelineStore


def create_store(settings: Settings | None = None) -> BasePipelineStore:
    """Instantiate the configured store backend. Defaults to memory."""
    backend = "memory" if settings is None else settings.store_backend

    if backend == "memory":
        from enliterator.storage.memory_store import MemoryPipelineStore
        return MemoryPipelineStore()

    if backend == "sqlite":
        from enliterator.storage.sqlite_store import SqlitePipelineStore
        return SqlitePipelineStore(settings.store_path)  # type: ignore[union-attr,arg-type]

    raise ValueError(f"Unsupported store backend: {backend!r}")
