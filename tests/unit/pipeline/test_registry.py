# tests/unit/pipeline/test_registry.py — v1
"""Tests for pipeline/registry.py: loading, replacement and validation."""

from __future__ import annotations

import pytest

from enliterator.core.stages import STAGE_ORDER, StageName
from enliterator.pipeline.registry import RegistryError, StageRegistry, _import_processor
from enliterator.pipeline.stages.graph import GraphProcessor
from enliterator.pipeline.stages.intake import IntakeProcessor


class TestLoad:
    def test_loads_every_stage(self):
        registry = StageRegistry().load_all()
        assert registry.stages == list(STAGE_ORDER)
        assert registry.validate() == []

    def test_create_instantiates(self, services):
        processor = StageRegistry().load_all().create(StageName.INTAKE, services)
        assert isinstance(processor, IntakeProcessor)

    def test_empty_registry_reports_gaps(self):
        errors = StageRegistry().validate()
        assert len(errors) == 9
        assert "intake" in errors[0]


class TestRegister:
    def test_replace(self, services):
        class QuietGraph(GraphProcessor):
            pass

        registry = StageRegistry().load_all()
        registry.register(StageName.GRAPH, QuietGraph)
        assert isinstance(registry.create(StageName.GRAPH, services), QuietGraph)

    def test_stage_mismatch(self, services):
        registry = StageRegistry()
        registry.register(StageName.RIGHTS, IntakeProcessor)
        with pytest.raises(RegistryError, match="implements 'intake'"):
            registry.create(StageName.RIGHTS, services)

    def test_missing(self, services):
        with pytest.raises(RegistryError, match="No processor"):
            StageRegistry().create(StageName.POOLS, services)


class TestImport:
    def test_bad_path(self):
        with pytest.raises(RegistryError, match="Invalid class path"):
            _import_processor("NoDots")

    def test_missing_module(self):
        with pytest.raises(RegistryError, match="Cannot import"):
            _import_processor("enliterator.nowhere.Thing")

    def test_missing_class(self):
        with pytest.raises(RegistryError, match="not found"):
            _import_processor("enliterator.pipeline.stages.intake.Nothing")

    def test_not_a_processor(self):
        with pytest.raises(RegistryError, match="not a BaseStageProcessor"):
            _import_processor("enliterator.core.models.Item")
