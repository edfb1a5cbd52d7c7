# src/pipeline/registry.py — v1
"""Stage registry: dynamic loading of stage processor classes.

Loads processor classes from STAGE_PROCESSORS and checks that every
stage has one whose ``stage`` property matches. Tests and embedders can
register a replacement class for a stage.
"""

from __future__ import annotations

import importlib
import logging

from enliterator.config.stages import STAGE_PROCESSORS
from enliterator.core.stages import STAGE_ORDER, StageName
from enliterator.pipeline.processor import BaseStageProcessor, StageServices

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """Raised when processor loading or validation fails."""


class StageRegistry:
    """Registry of the processor class for each stage."""

    def __init__(self) -> None:
        self._classes: dict[StageName, type[BaseStageProcessor]] = {}

    @property
    def stages(self) -> list[StageName]:
        """Registered stages in execution order."""
        return [s for s in STAGE_ORDER if s in self._classes]

    def load_all(self) -> StageRegistry:
        """Load every processor class from STAGE_PROCESSORS."""
        for stage, class_path in STAGE_PROCESSORS.items():
            self._classes[stage] = _import_processor(class_path)
            logger.debug("Loaded processor for %s: %s", stage.value, class_path)
        logger.info("Registry loaded %d stage processors", len(self._classes))
        return self

    def register(self, stage: StageName, cls: type[BaseStageProcessor]) -> None:
        """Register (or replace) the processor class for a stage."""
        if stage in self._classes:
            logger.debug("Replacing processor for %s with %s", stage.value, cls.__name__)
        self._classes[stage] = cls

    def create(self, stage: StageName, services: StageServices) -> BaseStageProcessor:
        """Instantiate the processor for ``stage``."""
        cls = self._classes.get(stage)
        if cls is None:
            raise RegistryError(f"No processor registered for stage '{stage.value}'")
        processor = cls(services)
        if processor.stage != stage:
            raise RegistryError(
                f"{cls.__name__} implements '{processor.stage.value}', not '{stage.value}'"
            )
        return processor

    def validate(self) -> list[str]:
        """Return error messages for stages with no processor."""
        return [
            f"Stage '{stage.value}' has no registered processor"
            for stage in STAGE_ORDER
            if stage not in self._classes
        ]


def _import_processor(class_path: str) -> type[BaseStageProcessor]:
    """Import a processor class from a dotted class path.

    Args:
        class_path: e.g. 'enliterator.pipeline.stages.intake.IntakeProcessor'
    """
    parts = class_path.rsplit(".", 1)
    if len(parts) != 2:
        raise RegistryError(f"Invalid class path: {class_path}")
    module_path, class_name = parts

    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise RegistryError(f"Cannot import module {module_path}: {exc}") from exc

    cls = getattr(module, class_name, None)
    if cls is None:
        raise RegistryError(f"Class {class_name} not found in {module_path}")
    if not isinstance(cls, type) or not issubclass(cls, BaseStageProcessor):
        raise RegistryError(f"{class_path} is not a BaseStageProcessor subclass")
    return cls
