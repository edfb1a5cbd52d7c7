# src/graph/base_graph_exporter.py — v1
"""Abstract graph export interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import networkx as nx


class BaseGraphExporter(ABC):
    """Writes a batch graph snapshot in one interchange format."""

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Export format identifier (e.g., 'json', 'graphml')."""

    @property
    @abstractmethod
    def file_extension(self) -> str:
        """Output file extension (e.g., '.json', '.graphml')."""

    @abstractmethod
    async def export(self, graph: nx.MultiDiGraph, output_path: Path) -> Path:
        """Export graph to file, return the written path."""
