# src/graph/exporters/json_exporter.py — v1
"""JSON graph exporter using the NetworkX node-link format."""

from __future__ import annotations

import json
from pathlib import Path

import networkx as nx

from enliterator.graph.base_graph_exporter import BaseGraphExporter


class JsonExporter(BaseGraphExporter):
    """Export graph to node-link JSON."""

    @property
    def format_name(self) -> str:
        return "json"

    @property
    def file_extension(self) -> str:
        return ".json"

    async def export(self, graph: nx.MultiDiGraph, output_path: Path) -> Path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        data = nx.node_link_data(graph)
        output_path.write_text(
            json.dumps(data, ensure_ascii=False, indent=2, default=str), encoding="utf-8"
        )
        return output_path
