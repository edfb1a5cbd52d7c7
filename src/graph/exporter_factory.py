# src/graph/exporter_factory.py — v1
"""Factory for graph exporter instantiation.

JSON is always produced; other formats come from DELIVERABLE_FORMATS.
"""

from __future__ import annotations

import importlib
import logging

from enliterator.graph.base_graph_exporter import BaseGraphExporter

logger = logging.getLogger(__name__)

_EXPORTERS: dict[str, str] = {
    "json": "enliterator.graph.exporters.json_exporter.JsonExporter",
    "graphml": "enliterator.graph.exporters.graphml_exporter.GraphMLExporter",
}


def create_exporters(formats: list[str] | None = None) -> list[BaseGraphExporter]:
    """Create exporters for the requested formats (json always included)."""
    wanted: set[str] = {"json", *(formats or [])}

    exporters: list[BaseGraphExporter] = []
    for fmt in sorted(wanted):
        fqcn = _EXPORTERS.get(fmt)
        if fqcn is None:
            logger.warning("Unknown deliverable format %r ignored", fmt)
            continue
        module_path, class_name = fqcn.rsplit(".", 1)
        exporters.append(getattr(importlib.import_module(module_path), class_name)())
    return exporters
