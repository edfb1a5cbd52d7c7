# src/graph/exporters/graphml_exporter.py — v1
"""GraphML graph exporter for standard interchange."""

from __future__ import annotations

import json
from pathlib import Path

import networkx as nx

from enliterator.graph.base_graph_exporter import BaseGraphExporter


def _scalar(value: object) -> object:
    if isinstance(value, (str, int, float, bool)):
        return value
    return json.dumps(value, default=str)


class GraphMLExporter(BaseGraphExporter):
    """Export graph to GraphML."""

    @property
    def format_name(self) -> str:
        return "graphml"

    @property
    def file_extension(self) -> str:
        return ".graphml"

    async def export(self, graph: nx.MultiDiGraph, output_path: Path) -> Path:
        output_path.parent.mkdir(parents=True, exist_ok=True)

        # GraphML attributes must be scalars; embeddings and lists go as JSON text
        g = graph.copy()
        for _, data in g.nodes(data=True):
            for k, v in list(data.items()):
                if v is None:
                    del data[k]
                else:
                    data[k] = _scalar(v)
        for _, _, data in g.edges(data=True):
            for k, v in list(data.items()):
                if v is None:
                    del data[k]
                else:
                    data[k] = _scalar(v)

        nx.write_graphml(g, str(output_path))
        return output_path
