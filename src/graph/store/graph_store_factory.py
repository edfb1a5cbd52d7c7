# src/graph/store/graph_store_factory.py — v1
"""Factory: instantiate the graph store from configuration."""

from __future__ import annotations

from enliterator.config.settings import Settings
from enliterator.graph.store.base_graph_store import BaseGraphStore


class UnsupportedGraphStoreError(ValueError):
    """Raised when a graph store type is not supported."""


def create_graph_store(settings: Settings | None = None) -> BaseGraphStore:
    """Instantiate the configured graph store (in-memory networkx by default)."""
    store_type = "networkx" if settings is None else settings.graph_store_type

    if store_type == "networkx":
        from enliterator.graph.store.networkx_store import NetworkxGraphStore
        return NetworkxGraphStore(None if settings is None else settings.graph_store_path)

    if store_type == "neo4j":
        from enliterator.graph.store.neo4j_store import Neo4jGraphStore
        return Neo4jGraphStore(
            uri=settings.neo4j_uri,  # type: ignore[union-attr]
            user=settings.neo4j_user,  # type: ignore[union-attr]
            password=settings.neo4j_password,  # type: ignore[union-attr]
            database=settings.neo4j_database,  # type: ignore[union-attr]
        )

    raise UnsupportedGraphStoreError(
        f"Unsupported graph store type: {store_type!r}. Available: networkx, neo4j"
    )
