# src/config/stages.py — v1
"""Declarative stage processor registry configuration.

One processor class per stage, imported by pipeline/registry.py.
"""

from __future__ import annotations

from enliterator.core.stages import StageName

# Fully qualified class paths for dynamic import by pipeline/registry.py.
STAGE_PROCESSORS: dict[StageName, str] = {
    StageName.INTAKE: "enliterator.pipeline.stages.intake.IntakeProcessor",
    StageName.RIGHTS: "enliterator.pipeline.stages.rights.RightsProcessor",
    StageName.LEXICON: "enliterator.pipeline.stages.lexicon.LexiconProcessor",
    StageName.POOLS: "enliterator.pipeline.stages.pools.PoolsProcessor",
    StageName.GRAPH: "enliterator.pipeline.stages.graph.GraphProcessor",
    StageName.EMBEDDINGS: "enliterator.pipeline.stages.embeddings.EmbeddingsProcessor",
    StageName.LITERACY: "enliterator.pipeline.stages.literacy.LiteracyProcessor",
    StageName.DELIVERABLES: "enliterator.pipeline.stages.deliverables.DeliverablesProcessor",
    StageName.FINE_TUNE: "enliterator.pipeline.stages.fine_tune.FineTuneProcessor",
}
