"""
Application configuration using Pydantic Settings.

Loads configuration from environment variables and .env files.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_FORMATS = {"json", "console"}


class Settings(BaseSettings):
    """
    Application settings.

    All settings can be overridden via environment variables.
    For example, HISTORY_MAX_SNAPSHOTS env var sets the history cap.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Storage
    # =========================================================================
    STATE_DIR: str = Field(
        default="~/.scrummer",
        description="Directory holding the persisted setup, history and sprint id records",
    )
    SETUP_STORAGE_KEY: str = Field(
        default="scrummer_setup_v1",
        min_length=1,
        description="Key of the persisted sprint setup record",
    )
    HISTORY_STORAGE_KEY: str = Field(
        default="scrummer_sprint_history_v1",
        min_length=1,
        description="Key of the persisted snapshot history record",
    )
    SPRINT_ID_STORAGE_KEY: str = Field(
        default="scrummer_current_sprint_id_v1",
        min_length=1,
        description="Key of the persisted current sprint id record",
    )

    # =========================================================================
    # Snapshot History
    # =========================================================================
    SNAPSHOT_DEDUP_WINDOW_MS: int = Field(
        default=60_000,
        ge=0,
        description="Reject a non-forced snapshot saved this soon after the previous one",
    )
    HISTORY_MAX_SNAPSHOTS: int = Field(
        default=30,
        ge=1,
        le=1000,
        description="Maximum snapshots kept in history (oldest evicted first)",
    )
    PREDICTABILITY_WINDOW: int = Field(
        default=5,
        ge=2,
        le=100,
        description="Number of most recent snapshots used for predictability",
    )

    # =========================================================================
    # Application
    # =========================================================================
    ENVIRONMENT: str = Field(
        default="development",
        description="Environment: development, staging, production",
    )
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="console", description="json or console")

    @field_validator("LOG_FORMAT", mode="before")
    @classmethod
    def parse_log_format(cls, value: Any) -> str:
        """Normalize and validate log renderer name."""
        normalized = str(value or "").strip().lower()
        if normalized not in _LOG_FORMATS:
            msg = f"LOG_FORMAT must be one of {sorted(_LOG_FORMATS)}"
            raise ValueError(msg)
        return normalized

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def parse_log_level(cls, value: Any) -> str:
        """Normalize log level names."""
        normalized = str(value or "").strip().upper()
        return normalized or "INFO"

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def effective_log_level(self) -> str:
        """Log level after environment defaults are applied."""
        if self.is_production and self.LOG_LEVEL == "DEBUG":
            return "INFO"
        return self.LOG_LEVEL

    @property
    def state_path(self) -> Path:
        """Expanded state directory path."""
        return Path(self.STATE_DIR).expanduser()

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


# Convenience instance
settings = get_settings()
