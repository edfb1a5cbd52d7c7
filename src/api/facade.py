# src/api/facade.py — v1
"""Public API facade: wire the pipeline from Settings.

Usage:
    from enliterator.api.facade import enliterate
    report = await enliterate(["./docs"], name="handbook")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from enliterator.config.settings import Settings
from enliterator.embeddings.embedder_factory import create_embedder
from enliterator.extraction.capability_factory import create_capabilities
from enliterator.graph.store.graph_store_factory import create_graph_store
from enliterator.pipeline.executor import create_executor
from enliterator.pipeline.orchestrator import PipelineOrchestrator, StatusReport
from enliterator.pipeline.processor import StageServices
from enliterator.pipeline.watchdog import Watchdog
from enliterator.storage.store_factory import create_store

logger = logging.getLogger(__name__)


def build_services(settings: Settings) -> StageServices:
    """Instantiate store, graph store, embedder and capabilities."""
    return StageServices(
        settings=settings,
        store=create_store(settings),
        graph=create_graph_store(settings),
        embedder=create_embedder(settings),
        capabilities=create_capabilities(settings),
    )


def build_orchestrator(
    settings: Settings | None = None, services: StageServices | None = None
) -> PipelineOrchestrator:
    """Orchestrator wired from settings (loaded from .env if None)."""
    settings = settings or Settings()
    services = services or build_services(settings)
    return PipelineOrchestrator(services, executor=create_executor(settings.executor))


def build_watchdog(orchestrator: PipelineOrchestrator) -> Watchdog:
    return Watchdog(orchestrator.store, orchestrator.settings)


def close_services(services: StageServices) -> None:
    services.store.close()
    services.graph.close()


async def enliterate(
    sources: Iterable[str | Path],
    name: str,
    settings: Settings | None = None,
    source_type: str = "mixed",
) -> StatusReport:
    """Ingest sources into a new batch and run it as far as the policy allows.

    Returns:
        Status report of the run (completed, or halted with a recommended
        command).
    """
    orchestrator = build_orchestrator(settings)
    try:
        batch = await orchestrator.create_batch(name, sources, source_type=source_type)
        run = await orchestrator.start_run(batch.id)
        await orchestrator.executor.join()
        report = await orchestrator.status(run.id)
    finally:
        close_services(orchestrator.services)
    logger.info("Batch %s finished as %s", report.batch_id, report.batch_status)
    return report
