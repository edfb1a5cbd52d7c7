# tests/unit/config/test_settings.py — v1
"""Tests for config/settings.py: defaults, validators and helpers."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from enliterator.config.settings import ConfigurationError, Settings, load_settings
from enliterator.core.stages import StageName


def make(**kw) -> Settings:
    return Settings(_env_file=None, store_backend="memory", **kw)


class TestDefaults:
    def test_policy_defaults(self):
        s = make()
        assert s.policy_max_failed_ratio == 0.10
        assert s.policy_max_quarantined_ratio == 0.50
        assert s.confidence_threshold == 0.7

    def test_execution_defaults(self):
        s = make()
        assert s.executor == "inline"
        assert s.auto_advance is True
        assert s.stage_concurrency == 8

    def test_deliverable_formats_list(self):
        s = make(deliverable_formats=" json , graphml ,")
        assert s.deliverable_formats_list == ["json", "graphml"]


class TestStageThresholds:
    def test_global_threshold_applies(self):
        s = make(confidence_threshold=0.6)
        assert s.confidence_threshold_for(StageName.POOLS) == 0.6

    def test_stage_override(self):
        s = make(stage_confidence_thresholds={"rights": 0.8})
        assert s.confidence_threshold_for(StageName.RIGHTS) == 0.8
        assert s.confidence_threshold_for(StageName.LEXICON) == 0.7

    def test_literacy_uses_item_threshold_unless_overridden(self):
        s = make(confidence_threshold=0.9, literacy_item_threshold=0.4)
        assert s.confidence_threshold_for(StageName.LITERACY) == 0.4
        s = make(literacy_item_threshold=0.4, stage_confidence_thresholds={"literacy": 0.75})
        assert s.confidence_threshold_for(StageName.LITERACY) == 0.75

    def test_unknown_stage_rejected(self):
        with pytest.raises(ConfigurationError, match="unknown stage 'review'"):
            make(stage_confidence_thresholds={"review": 0.5})

    def test_override_out_of_range(self):
        with pytest.raises(ConfigurationError, match="must be in"):
            make(stage_confidence_thresholds={"rights": 1.5})


class TestPolicyOverrides:
    def test_valid_override(self):
        s = make(stage_policy_overrides={"intake": {"max_failed_ratio": 0.2}})
        assert s.stage_policy_overrides["intake"]["max_failed_ratio"] == 0.2

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError, match="unknown key 'max_skipped_ratio'"):
            make(stage_policy_overrides={"intake": {"max_skipped_ratio": 0.2}})

    def test_errors_are_collected(self):
        with pytest.raises(ConfigurationError) as exc:
            make(
                stage_policy_overrides={"nope": {}},
                stage_confidence_thresholds={"other": 0.5},
            )
        assert "nope" in str(exc.value)
        assert "other" in str(exc.value)


class TestValidators:
    def test_ratio_out_of_range(self):
        with pytest.raises(ValidationError):
            make(policy_max_failed_ratio=1.2)

    def test_concurrency_positive(self):
        with pytest.raises(ValidationError):
            make(stage_concurrency=0)

    def test_sqlite_requires_path(self):
        with pytest.raises(ConfigurationError, match="STORE_PATH"):
            Settings(_env_file=None, store_backend="sqlite", store_path=None)

    def test_llm_backend_requires_key(self):
        with pytest.raises(ConfigurationError, match="ANTHROPIC_API_KEY"):
            make(extraction_backend="llm", llm_provider="anthropic", anthropic_api_key="")

    def test_llm_backend_with_key(self):
        s = make(extraction_backend="llm", llm_provider="openai", openai_api_key="sk-test")
        assert s.extraction_backend == "llm"

    def test_literacy_weights_must_sum_to_one(self):
        with pytest.raises(ConfigurationError, match="sum to 1.0"):
            make(literacy_w_coverage=0.5)


class TestEnvironment:
    def test_reads_env_vars(self, monkeypatch):
        monkeypatch.setenv("POLICY_MAX_FAILED_RATIO", "0.25")
        monkeypatch.setenv("STAGE_CONFIDENCE_THRESHOLDS", '{"lexicon": 0.4}')
        s = make()
        assert s.policy_max_failed_ratio == 0.25
        assert s.confidence_threshold_for(StageName.LEXICON) == 0.4

    def test_load_settings_overrides(self):
        s = load_settings(_env_file=None, store_backend="memory", max_resumes=5)
        assert s.max_resumes == 5
