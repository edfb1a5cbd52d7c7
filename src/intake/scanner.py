# src/intake/scanner.py — v1
"""Source discovery: turn files and directories into item drafts."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from enliterator.core.models import ItemDraft

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDES = frozenset({".git", "__pycache__", "node_modules", ".venv", "venv", "tmp", "log"})


class SourceScanner:
    """Expand paths into ItemDrafts (one per file), in sorted order."""

    def __init__(self, excludes: Iterable[str] = DEFAULT_EXCLUDES) -> None:
        self._excludes = frozenset(excludes)

    def scan(self, sources: Iterable[str | Path], recursive: bool = True) -> list[ItemDraft]:
        """Discover files under each source.

        A path that does not exist is kept as a draft so that intake
        records it as a failed item instead of dropping it silently.
        """
        sources = list(sources)
        drafts: list[ItemDraft] = []
        for source in sources:
            root = Path(source).expanduser()
            if root.is_dir():
                pattern_fn = root.rglob if recursive else root.glob
                for path in sorted(pattern_fn("*")):
                    if not path.is_file() or self._excluded(path, root):
                        continue
                    drafts.append(ItemDraft(source_path=str(path.resolve())))
            else:
                drafts.append(ItemDraft(source_path=str(root)))

        logger.info("Scanned %d sources: %d files", len(sources), len(drafts))
        return drafts

    def _excluded(self, path: Path, root: Path) -> bool:
        return any(part in self._excludes for part in path.relative_to(root).parts[:-1]) or (
            path.name.startswith(".") and path.name != ".env.example"
        )
