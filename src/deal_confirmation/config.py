"""Application configuration via pydantic-settings.

Reads from .env file or environment variables. All settings are validated
at startup; a setting with the wrong type makes the app fail fast with a
clear error message.

Usage:
    from deal_confirmation.config import get_settings
    settings = get_settings()
    print(settings.database_url)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the deal confirmation engine."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True
    app_log_level: str = "DEBUG"
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # --- Database (PostgreSQL) ---
    database_url: str = (
        "postgresql+asyncpg://marketplace:marketplace_dev"
        "@localhost:5432/deal_confirmation"
    )
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_echo_sql: bool = False

    # --- Redis (process-wide system settings) ---
    redis_url: str = "redis://localhost:6379/0"
    redis_settings_prefix: str = "settings:"

    # --- Confirmation rules ---
    # Used when the settings store has no auto_confirm_days value.
    default_auto_resolve_days: int = Field(default=7, ge=1)

    # --- Auto-resolve sweeper ---
    sweeper_enabled: bool = True
    sweep_interval_seconds: int = Field(default=3600, ge=1)
    sweep_batch_size: int = Field(default=500, ge=1)

    # --- Marketplace backend (conversations, notifications, support) ---
    marketplace_api_url: str = ""
    marketplace_api_token: str = ""
    collaborator_timeout_seconds: float = 5.0

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton of the application settings."""
    return Settings()
