"""
Centralized Configuration for reftriage

Uses Pydantic Settings for type-safe environment variable loading.
Every field can be overridden with a TRIAGE_-prefixed variable or a .env file.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from reftriage.config import CONFIG_DIR


class TriageSettings(BaseSettings):
    """Engine configuration."""

    rules_path: Path = Field(
        default=CONFIG_DIR / "default_rules.yaml",
        description="YAML file with the trigger table definition",
    )
    documents_path: Optional[Path] = Field(
        default=None,
        description="Root directory of the filesystem Document Store",
    )
    score_floor: float = Field(
        default=0.0,
        ge=0.0,
        lt=1.0,
        description="Candidates scoring at or below this are dropped",
    )
    ambiguity_epsilon: float = Field(
        default=0.05,
        ge=0.0,
        le=1.0,
        description="Top two scores this close flag the result ambiguous",
    )
    leaf_score: float = Field(
        default=0.9,
        gt=0.0,
        le=1.0,
        description="Score of a decision tree leaf reached with full confidence",
    )
    halted_score: float = Field(
        default=0.5,
        gt=0.0,
        le=1.0,
        description="Score of a decision node where traversal halted",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    metrics_enabled: bool = Field(
        default=True,
        description="Record Prometheus metrics for resolutions",
    )
    metrics_namespace: str = Field(
        default="reftriage",
        description="Prefix of every metric name",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper

    @model_validator(mode="after")
    def validate_scores(self) -> "TriageSettings":
        if self.halted_score > self.leaf_score:
            raise ValueError("halted_score must not exceed leaf_score")
        return self

    model_config = SettingsConfigDict(
        env_prefix="TRIAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
_settings: Optional[TriageSettings] = None


def get_settings() -> TriageSettings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = TriageSettings()
    return _settings


def reload_settings() -> TriageSettings:
    """Reload settings from the environment (useful for testing)."""
    global _settings
    _settings = TriageSettings()
    return _settings
