"""
Configuration management for Aegis.

Supports environment variables, .env files, and YAML configuration.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ContentSafetySettings(BaseSettings):
    """Settings for the external content-safety classifier."""

    model_config = SettingsConfigDict(
        env_prefix="AEGIS_CONTENT_SAFETY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    endpoint: str | None = Field(default=None, alias="CONTENT_SAFETY_ENDPOINT")
    api_key: SecretStr | None = Field(default=None, alias="CONTENT_SAFETY_KEY")
    api_version: str = "2024-09-01"
    output_type: str = "FourSeverityLevels"
    categories: list[str] = Field(
        default_factory=lambda: ["Hate", "SelfHarm", "Sexual", "Violence"]
    )

    # Bounded call semantics
    timeout_seconds: float = Field(default=10.0, gt=0)
    max_retries: int = Field(default=2, ge=0)
    retry_base_delay: float = Field(default=0.5, ge=0)

    # Service-side limit per request; longer texts are chunked
    max_text_length: int = Field(default=10_000, gt=0)

    @field_validator("output_type")
    @classmethod
    def validate_output_type(cls, v: str) -> str:
        valid = {"FourSeverityLevels", "EightSeverityLevels"}
        if v not in valid:
            raise ValueError(f"Invalid output type: {v}. Must be one of {valid}")
        return v

    @property
    def is_configured(self) -> bool:
        """Check if the classifier endpoint and key are set."""
        return bool(self.endpoint) and self.api_key is not None


class GuardrailSettings(BaseSettings):
    """Guardrail pipeline settings."""

    model_config = SettingsConfigDict(
        env_prefix="AEGIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    groundedness_threshold: float = Field(default=0.30, ge=0.0, le=1.0)
    redaction_marker: str = "[REDACTED]"

    # PII check details carry the matched literals for manual review.
    # Set to False to report only entity types and counts.
    pii_details_include_values: bool = True

    # Audit and telemetry
    audit_enabled: bool = True
    audit_buffer_size: int = Field(default=1000, gt=0)
    telemetry_enabled: bool = True

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in {"json", "console"}:
            raise ValueError(f"Invalid log format: {v}. Must be 'json' or 'console'")
        return v


class Settings(BaseSettings):
    """Combined application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    content_safety: ContentSafetySettings = Field(default_factory=ContentSafetySettings)
    guardrails: GuardrailSettings = Field(default_factory=GuardrailSettings)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        import yaml

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


def reload_settings() -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()
