# src/graph/store/base_graph_store.py — v1
"""Abstract graph store with a two-phase write discipline.

Schema operations (uniqueness constraints, indexes) run in their own
transaction through apply_schema(). Node and edge writes run later in
data transactions opened with data_transaction(). A data write while no
schema has been committed, or while a schema transaction is still open,
raises SchemaOrderError.

Writes inside a data transaction are buffered and applied on commit;
an exception inside the ``async with`` block discards them. Node and
edge writes are upserts (merge by node id, and by source/relation/target).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, AsyncIterator

from enliterator.core.errors import SchemaOrderError

if TYPE_CHECKING:
    import networkx as nx


@dataclass(frozen=True)
class GraphSchema:
    """Labels with a unique ``node_id`` plus secondary property indexes."""

    labels: tuple[str, ...]
    unique_key: str = "node_id"
    indexes: tuple[tuple[str, str], ...] = ()

    def statements(self) -> list[str]:
        """Cypher DDL for this schema (idempotent)."""
        stmts = [
            f"CREATE CONSTRAINT {label.lower()}_{self.unique_key}_unique IF NOT EXISTS "
            f"FOR (n:{label}) REQUIRE n.{self.unique_key} IS UNIQUE"
            for label in self.labels
        ]
        stmts += [
            f"CREATE INDEX {label.lower()}_{prop}_idx IF NOT EXISTS FOR (n:{label}) ON (n.{prop})"
            for label, prop in self.indexes
        ]
        return stmts


@dataclass
class GraphOp:
    """One buffered write."""

    kind: str  # "node" | "edge" | "props"
    node_id: str = ""
    label: str = ""
    source_id: str = ""
    relation: str = ""
    target_id: str = ""
    properties: dict[str, Any] = field(default_factory=dict)


class GraphWriter:
    """Write handle of an open data transaction."""

    def __init__(self, store: BaseGraphStore) -> None:
        self._store = store
        self.ops: list[GraphOp] = []

    def upsert_node(self, node_id: str, label: str, properties: dict[str, Any]) -> None:
        self._store._require_schema()
        self.ops.append(GraphOp("node", node_id=node_id, label=label, properties=dict(properties)))

    def upsert_edge(
        self, source_id: str, relation: str, target_id: str, properties: dict[str, Any] | None = None
    ) -> None:
        self._store._require_schema()
        self.ops.append(GraphOp(
            "edge", source_id=source_id, relation=relation, target_id=target_id,
            properties=dict(properties or {}),
        ))

    def set_properties(self, node_id: str, properties: dict[str, Any]) -> None:
        self._store._require_schema()
        self.ops.append(GraphOp("props", node_id=node_id, properties=dict(properties)))


class BaseGraphStore(ABC):
    """Unified interface for graph store backends."""

    def __init__(self) -> None:
        self._schema: GraphSchema | None = None
        self._schema_open = False

    @property
    def schema_committed(self) -> bool:
        return self._schema is not None and not self._schema_open

    def _require_schema(self) -> None:
        if self._schema_open:
            raise SchemaOrderError("Data write attempted while the schema transaction is open")
        if self._schema is None:
            raise SchemaOrderError("Data write attempted before the schema transaction committed")

    async def apply_schema(self, schema: GraphSchema) -> None:
        """Declare constraints and indexes in one committed transaction."""
        self._schema_open = True
        try:
            await self._commit_schema(schema)
            self._schema = schema
        finally:
            self._schema_open = False

    @asynccontextmanager
    async def data_transaction(self) -> AsyncIterator[GraphWriter]:
        """Open a data transaction; buffered writes commit on clean exit."""
        self._require_schema()
        writer = GraphWriter(self)
        yield writer
        if writer.ops:
            await self._commit_data(writer.ops)

    # --- Backend hooks ---

    @abstractmethod
    async def _commit_schema(self, schema: GraphSchema) -> None:
        """Apply schema DDL atomically."""

    @abstractmethod
    async def _commit_data(self, ops: list[GraphOp]) -> None:
        """Apply buffered writes atomically."""

    # --- Reads ---

    @abstractmethod
    async def get_node(self, node_id: str) -> dict | None:
        """Node properties (including ``label``) or None."""

    @abstractmethod
    async def node_count(self, batch_id: str | None = None) -> int:
        """Number of nodes, optionally restricted to one batch."""

    @abstractmethod
    async def edge_count(self, batch_id: str | None = None) -> int:
        """Number of edges, optionally restricted to one batch."""

    @abstractmethod
    async def to_networkx(self, batch_id: str | None = None) -> nx.MultiDiGraph:
        """Snapshot of the graph (or one batch's subgraph) for export."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (networkx, neo4j)."""

    def close(self) -> None:
        """Release resources (no-op by default)."""
