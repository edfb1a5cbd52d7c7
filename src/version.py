# src/version.py — v1
"""enliterator: rights-aware knowledge graph ingestion pipeline."""

__version__ = "0.3.0"
