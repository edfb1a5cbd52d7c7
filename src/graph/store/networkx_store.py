# src/graph/store/networkx_store.py — v1
"""In-process graph store on a NetworkX MultiDiGraph (GRAPH_STORE_TYPE=networkx).

Edges are keyed by relation so an upsert of the same
(source, relation, target) merges properties instead of adding a
parallel edge. A node keeps the label it was created with. With a
``path`` the graph and its committed schema are persisted as node-link
JSON after every commit.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import networkx as nx

from enliterator.core.errors import StageInvariantError
from enliterator.graph.store.base_graph_store import BaseGraphStore, GraphOp, GraphSchema

logger = logging.getLogger(__name__)


class NetworkxGraphStore(BaseGraphStore):
    """Graph store backed by networkx, optionally persisted to JSON."""

    def __init__(self, path: Path | str | None = None) -> None:
        super().__init__()
        self._path = Path(path).expanduser() if path else None
        self._graph = nx.MultiDiGraph()
        if self._path is not None and self._path.exists():
            self._load()

    def _load(self) -> None:
        data = json.loads(self._path.read_text(encoding="utf-8"))  # type: ignore[union-attr]
        self._graph = nx.node_link_graph(data["graph"], directed=True, multigraph=True)
        schema = data.get("schema")
        if schema:
            self._schema = GraphSchema(
                labels=tuple(schema["labels"]),
                unique_key=schema.get("unique_key", "node_id"),
                indexes=tuple(tuple(i) for i in schema.get("indexes", [])),
            )
        logger.debug("Loaded graph from %s (%d nodes)", self._path, self._graph.number_of_nodes())

    def _persist(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "schema": None if self._schema is None else {
                "labels": list(self._schema.labels),
                "unique_key": self._schema.unique_key,
                "indexes": [list(i) for i in self._schema.indexes],
            },
            "graph": nx.node_link_data(self._graph),
        }
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(payload, default=str), encoding="utf-8")
        tmp.replace(self._path)

    async def _commit_schema(self, schema: GraphSchema) -> None:
        # Constraints are enforced on commit of data; only the declaration is stored.
        self._schema = schema
        self._persist()

    async def _commit_data(self, ops: list[GraphOp]) -> None:
        staged = self._graph.copy()
        labels = set(self._schema.labels) if self._schema else set()
        for op in ops:
            if op.kind == "node":
                if labels and op.label not in labels:
                    raise StageInvariantError(f"Label {op.label!r} is not declared in the graph schema")
                existing = staged.nodes[op.node_id].get("label") if op.node_id in staged else None
                if existing and existing != op.label:
                    # First label wins; the relabelled upsert is dropped.
                    logger.debug("Node %s keeps label %r over %r", op.node_id, existing, op.label)
                    continue
                staged.add_node(op.node_id, label=op.label, **op.properties)
            elif op.kind == "edge":
                for node_id in (op.source_id, op.target_id):
                    if node_id not in staged:
                        raise StageInvariantError(f"Edge endpoint {node_id} does not exist")
                attrs = dict(staged.get_edge_data(op.source_id, op.target_id, op.relation) or {})
                attrs.update(op.properties, relation=op.relation)
                staged.add_edge(op.source_id, op.target_id, key=op.relation, **attrs)
            elif op.kind == "props":
                if op.node_id not in staged:
                    raise StageInvariantError(f"Node {op.node_id} does not exist")
                staged.nodes[op.node_id].update(op.properties)
        self._graph = staged
        self._persist()

    async def get_node(self, node_id: str) -> dict | None:
        if node_id not in self._graph:
            return None
        return dict(self._graph.nodes[node_id])

    def _batch_nodes(self, batch_id: str | None) -> list[str]:
        return [
            n for n, data in self._graph.nodes(data=True)
            if batch_id is None or data.get("batch_id") == batch_id
        ]

    async def node_count(self, batch_id: str | None = None) -> int:
        return len(self._batch_nodes(batch_id))

    async def edge_count(self, batch_id: str | None = None) -> int:
        if batch_id is None:
            return self._graph.number_of_edges()
        return self._graph.subgraph(self._batch_nodes(batch_id)).number_of_edges()

    async def to_networkx(self, batch_id: str | None = None) -> nx.MultiDiGraph:
        if batch_id is None:
            return self._graph.copy()
        return self._graph.subgraph(self._batch_nodes(batch_id)).copy()

    @property
    def provider_name(self) -> str:
        return "networkx"
