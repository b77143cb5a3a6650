"""
Configuration settings for the exam state client.

Uses Pydantic Settings for environment variable management with .env file support.
All values are resolved once at boot and consumed read-only by the transport,
persistence and CLI layers.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TMA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Backend API
    # ========================================
    api_base_url: str = Field(
        default="http://127.0.0.1:8000",
        description="Base URL of the exam backend",
    )
    use_mock_data: bool = Field(
        default=True,
        description="Serve requests from the in-process mock backend",
    )
    request_timeout_ms: int = Field(
        default=15000,
        description="Timeout for a single remote call",
    )
    mock_latency_ms: int = Field(
        default=220,
        description="Simulated latency for mock backend responses",
    )

    # ========================================
    # Local state
    # ========================================
    storage_dir: Path = Field(
        default=Path.home() / ".tma-exam",
        description="Directory holding the persisted auth/profile/theme entries",
    )
    notification_timeout_ms: int = Field(
        default=3500,
        description="Lifetime of a notification before auto-dismissal",
    )
    default_session_hours: int = Field(
        default=8,
        description="Session lifetime used when login does not report an expiry",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: str = Field(default="INFO", description="Log level for the CLI sink")

    @property
    def request_timeout_seconds(self) -> float:
        return self.request_timeout_ms / 1000.0

    @property
    def mock_latency_seconds(self) -> float:
        return self.mock_latency_ms / 1000.0

    @property
    def notification_timeout_seconds(self) -> float:
        return self.notification_timeout_ms / 1000.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
