# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment-specific settings: backend host,
gateway retry and timeout policy, datastore location and logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class BackendSpec(BaseModel):
    """A backend declared in LLM_BACKENDS, registered at startup."""

    name: str | None = None
    defaults: dict[str, Any] = Field(default_factory=dict)


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === LLM BACKENDS ===
    llm_host: str = "host.docker.internal"
    llm_top_p: float = 0.9
    llm_top_k: int = 40
    # JSON object keyed by backend address, e.g.
    # {"5001": {"name": "small", "defaults": {"temperature": 0.7, "top_k": 20}}}
    llm_backends: dict[str, BackendSpec] = Field(default_factory=dict)

    # === Gateway ===
    gateway_retries: int = 2
    gateway_retry_delay_s: float = 2.0
    generation_timeout_s: float = 180.0
    metadata_timeout_s: float = 30.0
    backend_admission: Literal["none", "serial"] = "none"

    # === Datastore ===
    database_path: Path = Path("~/.promptrelay/promptrelay.db")

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("gateway_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("gateway_retries must be >= 0")
        return v

    @field_validator("gateway_retry_delay_s")
    @classmethod
    def validate_retry_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("gateway_retry_delay_s must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.generation_timeout_s <= 0 or self.metadata_timeout_s <= 0:
            errors.append("GENERATION_TIMEOUT_S and METADATA_TIMEOUT_S must be > 0")

        if self.metadata_timeout_s > self.generation_timeout_s:
            errors.append("METADATA_TIMEOUT_S must be <= GENERATION_TIMEOUT_S")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
