# src/pipeline/stages/intake.py — v1
"""Stage 1: intake.

Reads each item's content (inline payload or file), classifies its media
type, hashes it and keeps a sample for rights inference. Duplicates by
content hash are resolved after all items report, in ordinal order, so
the outcome does not depend on which task finished first.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from pathlib import Path

from enliterator.core.models import (
    READABLE_MEDIA_TYPES,
    Batch,
    GateResult,
    Item,
    ItemStatus,
    MediaType,
    Skipped,
    Succeeded,
)
from enliterator.core.stages import StageName
from enliterator.extraction.base_capability import FatalError
from enliterator.intake.media import detect_media_type
from enliterator.pipeline.processor import BaseStageProcessor, ItemResultType

logger = logging.getLogger(__name__)

SAMPLE_CHARS = 5000


class IntakeProcessor(BaseStageProcessor):
    """File discovery, hashing and content capture."""

    writes_item_fields = True

    @property
    def stage(self) -> StageName:
        return StageName.INTAKE

    async def process_item(self, item: Item, batch: Batch) -> ItemResultType:
        if item.content:
            raw = item.content.encode("utf-8")
        elif item.source_path:
            raw = await asyncio.to_thread(_read_bytes, item.source_path)
        else:
            raise FatalError("Item has neither content nor a source path")

        if item.media_type == MediaType.UNKNOWN:
            item.media_type = detect_media_type(item.source_path)
        # Inline payloads with no recognisable name are plain text
        if item.media_type == MediaType.UNKNOWN and item.content:
            item.media_type = MediaType.TEXT

        item.size_bytes = len(raw)
        item.content_hash = hashlib.sha256(raw).hexdigest()
        if item.media_type in READABLE_MEDIA_TYPES or item.media_type == MediaType.UNKNOWN:
            item.content = raw.decode("utf-8", errors="replace")
        else:
            item.content = ""
        item.content_sample = item.content[:SAMPLE_CHARS]

        return Succeeded(metadata={
            "media_type": item.media_type.value,
            "content_hash": item.content_hash,
            "size_bytes": item.size_bytes,
            "text_available": bool(item.content),
        })

    async def after_stage(
        self, batch: Batch, population: list[Item], results: dict[str, ItemResultType]
    ) -> GateResult | None:
        """Skip items whose content hash an earlier item already brought in."""
        current = {i.id: i for i in await self.store.list_items(batch.id)}
        first_by_hash: dict[str, str] = {}

        # Items completed in earlier invocations take precedence.
        earlier = [i for i in population if i.id not in results]
        fresh = [i for i in population if i.id in results]
        for item in earlier + fresh:
            stored = current[item.id]
            if stored.status(self.stage) != ItemStatus.SUCCEEDED or not stored.content_hash:
                continue
            original = first_by_hash.setdefault(stored.content_hash, stored.id)
            if original == stored.id or item.id not in results:
                continue
            logger.info("Item %s duplicates %s", stored.label, original)
            await self.rewrite_record(stored.id, Skipped(
                reason="duplicate content",
                contributed=False,
                metadata={"duplicate_of": original, "content_hash": stored.content_hash},
            ))
        return None


def _read_bytes(path: str) -> bytes:
    file_path = Path(path).expanduser()
    if not file_path.is_file():
        raise FatalError(f"File not found: {path}")
    try:
        return file_path.read_bytes()
    except OSError as e:
        raise FatalError(f"Cannot read {path}: {e}") from e
