# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment settings, per-stage confidence
thresholds and advancement policy thresholds.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from enliterator.core.stages import StageName


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


_STAGE_NAMES = {s.value for s in StageName}
_POLICY_KEYS = {"max_failed_ratio", "max_quarantined_ratio"}


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === STORAGE ===
    store_backend: Literal["memory", "sqlite"] = "sqlite"
    store_path: Path | None = Path("~/.enliterator/pipeline.db")

    # === GRAPH STORE ===
    graph_store_type: Literal["networkx", "neo4j"] = "networkx"
    graph_store_path: Path | None = Path("~/.enliterator/graph.json")
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = ""
    neo4j_password: str = ""
    neo4j_database: str = "neo4j"

    # === EXTRACTION CAPABILITIES ===
    extraction_backend: Literal["heuristic", "llm"] = "heuristic"
    llm_provider: Literal["anthropic", "openai"] = "anthropic"
    llm_model: str = "claude-sonnet-4-20250514"
    llm_timeout_s: float = 60.0
    anthropic_api_key: str = ""
    openai_api_key: str = ""

    # === ITEM CLASSIFICATION ===
    confidence_threshold: float = 0.7
    stage_confidence_thresholds: dict[str, float] = {}

    # === ADVANCEMENT POLICY ===
    policy_max_failed_ratio: float = 0.10
    policy_max_quarantined_ratio: float = 0.50
    stage_policy_overrides: dict[str, dict[str, float]] = {}

    # === RETRY (extraction capability) ===
    retry_max_attempts: int = 3
    retry_base_delay_s: float = 1.0
    retry_backoff_factor: float = 2.0
    retry_max_delay_s: float = 30.0
    retry_jitter: bool = True

    # === EXECUTION ===
    stage_concurrency: int = 8
    executor: Literal["inline", "background"] = "inline"
    auto_advance: bool = True
    max_resumes: int = 3

    # === WATCHDOG ===
    watchdog_poll_seconds: float = 15.0
    watchdog_stale_minutes: float = 20.0

    # === LITERACY ===
    literacy_min_score: float = 70.0
    literacy_item_threshold: float = 0.5
    literacy_w_coverage: float = 0.3
    literacy_w_completeness: float = 0.3
    literacy_w_density: float = 0.2
    literacy_w_quality: float = 0.2

    # === OUTPUTS ===
    output_root: Path = Path("~/.enliterator/output")
    deliverable_formats: str = "json,graphml"
    embedding_provider: Literal["hashing", "openai"] = "hashing"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 256

    # === LOGGING ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator(
        "confidence_threshold",
        "policy_max_failed_ratio",
        "policy_max_quarantined_ratio",
        "literacy_item_threshold",
    )
    @classmethod
    def validate_unit_interval(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("must be between 0 and 1")
        return v

    @field_validator("stage_concurrency", "retry_max_attempts", "embedding_dimensions", "max_resumes")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        for key, value in self.stage_confidence_thresholds.items():
            if key not in _STAGE_NAMES:
                errors.append(f"STAGE_CONFIDENCE_THRESHOLDS: unknown stage '{key}'")
            elif not 0.0 <= value <= 1.0:
                errors.append(f"STAGE_CONFIDENCE_THRESHOLDS[{key}] must be in [0, 1]")

        for key, override in self.stage_policy_overrides.items():
            if key not in _STAGE_NAMES:
                errors.append(f"STAGE_POLICY_OVERRIDES: unknown stage '{key}'")
                continue
            for name, value in override.items():
                if name not in _POLICY_KEYS:
                    errors.append(f"STAGE_POLICY_OVERRIDES[{key}]: unknown key '{name}'")
                elif not 0.0 <= value <= 1.0:
                    errors.append(f"STAGE_POLICY_OVERRIDES[{key}].{name} must be in [0, 1]")

        if self.store_backend == "sqlite" and self.store_path is None:
            errors.append("STORE_BACKEND=sqlite requires STORE_PATH")

        if self.extraction_backend == "llm":
            key = self.anthropic_api_key if self.llm_provider == "anthropic" else self.openai_api_key
            if not key:
                errors.append(f"EXTRACTION_BACKEND=llm requires {self.llm_provider.upper()}_API_KEY")

        if self.graph_store_type == "neo4j" and not self.neo4j_uri:
            errors.append("GRAPH_STORE_TYPE=neo4j requires NEO4J_URI")

        weights = (
            self.literacy_w_coverage
            + self.literacy_w_completeness
            + self.literacy_w_density
            + self.literacy_w_quality
        )
        if abs(weights - 1.0) > 1e-6:
            errors.append("LITERACY_W_* weights must sum to 1.0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    def confidence_threshold_for(self, stage: StageName) -> float:
        """Quarantine threshold for a stage (override or default).

        The literacy stage classifies layer scores, so its default is
        literacy_item_threshold rather than confidence_threshold.
        """
        default = (
            self.literacy_item_threshold if stage == StageName.LITERACY else self.confidence_threshold
        )
        return self.stage_confidence_thresholds.get(stage.value, default)

    @property
    def deliverable_formats_list(self) -> list[str]:
        """Parse comma-separated deliverable formats."""
        return [f.strip() for f in self.deliverable_formats.split(",") if f.strip()]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
