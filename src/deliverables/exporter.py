# src/deliverables/exporter.py — v1
"""Batch deliverables: public graph exports, manifest and README.

Only publishable documents leave the system. Withheld documents are
removed from the exported graph together with any entity that no
published document mentions.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import networkx as nx

from enliterator.core.models import Batch, utcnow
from enliterator.graph.base_graph_exporter import BaseGraphExporter
from enliterator.graph.schema import DOCUMENT_LABEL, MENTIONS, document_node_id

logger = logging.getLogger(__name__)


def batch_output_dir(output_root: Path, batch_id: str) -> Path:
    return Path(output_root).expanduser() / f"batch_{batch_id}"


def public_graph(graph: nx.MultiDiGraph, published_item_ids: set[str]) -> nx.MultiDiGraph:
    """Copy of ``graph`` restricted to published documents and what they mention."""
    keep_docs = {document_node_id(i) for i in published_item_ids}
    keep: set[str] = set()
    for node_id, data in graph.nodes(data=True):
        if data.get("label") == DOCUMENT_LABEL:
            if node_id in keep_docs:
                keep.add(node_id)
            continue
        mentioned_by = {
            src for src, _, rel in graph.in_edges(node_id, data="relation") if rel == MENTIONS
        }
        if mentioned_by & keep_docs:
            keep.add(node_id)
    return graph.subgraph(keep).copy()


def render_readme(batch: Batch, manifest: dict[str, Any]) -> str:
    literacy = manifest.get("literacy_score")
    lines = [
        f"# {batch.name}",
        "",
        f"Batch `{batch.id}` exported {manifest['generated_at']}.",
        "",
        f"- Published documents: {manifest['published_items']}",
        f"- Withheld documents: {manifest['withheld_items']}",
        f"- Nodes: {manifest['nodes']}, edges: {manifest['edges']}",
    ]
    if literacy is not None:
        lines.append(f"- Enliteracy score: {literacy:.2f}")
    lines += ["", "## Files", ""]
    lines += [f"- `{name}`" for name in manifest["files"]]
    lines += [
        "",
        "Documents whose rights record does not allow publication are withheld,",
        "along with entities that only withheld documents mention.",
        "",
    ]
    return "\n".join(lines)


class DeliverableExporter:
    """Writes the deliverable set of one batch."""

    def __init__(self, output_root: Path, exporters: list[BaseGraphExporter]) -> None:
        self.output_root = Path(output_root)
        self.exporters = exporters

    async def export(
        self,
        batch: Batch,
        graph: nx.MultiDiGraph,
        published: list[dict[str, Any]],
        withheld: int,
    ) -> dict[str, Any]:
        """Write graph exports, manifest.json and README.md.

        Args:
            batch: The batch being exported.
            graph: Full batch graph snapshot.
            published: One entry per published item (id, path, license).
            withheld: Number of items kept out of the export.

        Returns:
            The manifest that was written.
        """
        out_dir = batch_output_dir(self.output_root, batch.id)
        out_dir.mkdir(parents=True, exist_ok=True)

        public = public_graph(graph, {p["item_id"] for p in published})
        files = []
        for exporter in self.exporters:
            path = await exporter.export(public, out_dir / f"graph{exporter.file_extension}")
            files.append(path.name)

        manifest: dict[str, Any] = {
            "batch_id": batch.id,
            "batch_name": batch.name,
            "generated_at": utcnow().isoformat(),
            "published_items": len(published),
            "withheld_items": withheld,
            "nodes": public.number_of_nodes(),
            "edges": public.number_of_edges(),
            "literacy_score": batch.artifacts.get("literacy", {}).get("score"),
            "items": published,
            "files": [*files, "manifest.json", "README.md"],
        }
        (out_dir / "manifest.json").write_text(
            json.dumps(manifest, indent=2, ensure_ascii=False, default=str), encoding="utf-8"
        )
        (out_dir / "README.md").write_text(render_readme(batch, manifest), encoding="utf-8")
        logger.info("Deliverables written to %s (%d files)", out_dir, len(manifest["files"]))
        return {**manifest, "output_dir": str(out_dir)}
