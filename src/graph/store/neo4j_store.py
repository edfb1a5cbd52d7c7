# src/graph/store/neo4j_store.py — v1
"""Neo4j graph store adapter (GRAPH_STORE_TYPE=neo4j).

Schema DDL and data writes never share a transaction: Neo4j rejects
writes in a transaction that also modified the schema. Nodes merge on
``node_id`` alone and keep the label they were created with. Requires the
``neo4j`` driver (pip install enliterator[neo4j]).
"""

from __future__ import annotations

import logging
import re

import networkx as nx

from enliterator.graph.store.base_graph_store import BaseGraphStore, GraphOp, GraphSchema

logger = logging.getLogger(__name__)

_IDENT = re.compile(r"[^A-Za-z0-9_]")


def _safe(name: str) -> str:
    return _IDENT.sub("_", name)


class Neo4jGraphStore(BaseGraphStore):
    """Graph store backed by Neo4j."""

    def __init__(
        self,
        uri: str = "bolt://localhost:7687",
        user: str = "",
        password: str = "",
        database: str = "neo4j",
    ) -> None:
        super().__init__()
        try:
            from neo4j import GraphDatabase
        except ImportError as e:
            raise ImportError("neo4j package required: pip install enliterator[neo4j]") from e

        auth = (user, password) if user else None
        self._driver = GraphDatabase.driver(uri, auth=auth)
        self._database = database

    def _read(self, query: str, **params) -> list[dict]:
        with self._driver.session(database=self._database) as session:
            return [record.data() for record in session.run(query, **params)]

    async def _commit_schema(self, schema: GraphSchema) -> None:
        with self._driver.session(database=self._database) as session:
            with session.begin_transaction() as tx:
                for stmt in schema.statements():
                    tx.run(stmt)
                tx.commit()
        logger.info("Neo4j schema committed (%d statements)", len(schema.statements()))

    async def _commit_data(self, ops: list[GraphOp]) -> None:
        with self._driver.session(database=self._database) as session:
            with session.begin_transaction() as tx:
                for op in ops:
                    if op.kind == "node":
                        label = _safe(op.label)
                        tx.run(
                            "MERGE (n {node_id: $node_id}) "
                            f"ON CREATE SET n:{label}, n += $props "
                            f"ON MATCH SET n += CASE WHEN n:{label} THEN $props ELSE {{}} END",
                            node_id=op.node_id, props=op.properties,
                        )
                    elif op.kind == "edge":
                        tx.run(
                            "MATCH (a {node_id: $src}), (b {node_id: $tgt}) "
                            f"MERGE (a)-[r:{_safe(op.relation).upper()}]->(b) SET r += $props",
                            src=op.source_id, tgt=op.target_id, props=op.properties,
                        )
                    else:
                        tx.run(
                            "MATCH (n {node_id: $node_id}) SET n += $props",
                            node_id=op.node_id, props=op.properties,
                        )
                tx.commit()

    async def get_node(self, node_id: str) -> dict | None:
        rows = self._read(
            "MATCH (n {node_id: $node_id}) RETURN properties(n) AS props, labels(n) AS labels",
            node_id=node_id,
        )
        if not rows:
            return None
        props = dict(rows[0]["props"])
        props["label"] = rows[0]["labels"][0] if rows[0]["labels"] else ""
        return props

    async def node_count(self, batch_id: str | None = None) -> int:
        rows = self._read(
            "MATCH (n) WHERE $batch_id IS NULL OR n.batch_id = $batch_id RETURN count(n) AS cnt",
            batch_id=batch_id,
        )
        return rows[0]["cnt"] if rows else 0

    async def edge_count(self, batch_id: str | None = None) -> int:
        rows = self._read(
            "MATCH (a)-[r]->(b) WHERE $batch_id IS NULL OR "
            "(a.batch_id = $batch_id AND b.batch_id = $batch_id) RETURN count(r) AS cnt",
            batch_id=batch_id,
        )
        return rows[0]["cnt"] if rows else 0

    async def to_networkx(self, batch_id: str | None = None) -> nx.MultiDiGraph:
        graph = nx.MultiDiGraph()
        for row in self._read(
            "MATCH (n) WHERE $batch_id IS NULL OR n.batch_id = $batch_id "
            "RETURN properties(n) AS props, labels(n) AS labels",
            batch_id=batch_id,
        ):
            props = dict(row["props"])
            node_id = props.pop("node_id")
            graph.add_node(node_id, label=row["labels"][0] if row["labels"] else "", **props)
        for row in self._read(
            "MATCH (a)-[r]->(b) WHERE $batch_id IS NULL OR "
            "(a.batch_id = $batch_id AND b.batch_id = $batch_id) "
            "RETURN a.node_id AS src, b.node_id AS tgt, type(r) AS rel, properties(r) AS props",
            batch_id=batch_id,
        ):
            rel = row["rel"].lower()
            graph.add_edge(row["src"], row["tgt"], key=rel, relation=rel, **row["props"])
        return graph

    @property
    def provider_name(self) -> str:
        return "neo4j"

    def close(self) -> None:
        """Close the driver connection."""
        self._driver.close()
