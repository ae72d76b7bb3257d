"""
Configuration management for Ticket Pipeline Control.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Every field can be overridden with a ``TP_``-prefixed environment
    variable (e.g. ``TP_API_BASE_URL``) or from a local ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="TP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Ticket Pipeline Control")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # Dashboard API
    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=8100)

    # Pipeline backend
    api_base_url: str = Field(
        default="http://localhost:3000",
        description=(
            "Base URL of the pipeline backend, including any route prefix such as "
            "'/api'; workflow and jira routes are appended to it"
        ),
    )
    api_timeout: float = Field(default=30.0, description="Request timeout in seconds")
    api_token: Optional[str] = Field(default=None, description="Optional bearer token")

    # Polling
    poll_interval: float = Field(
        default=3.0, description="Seconds between status checks while a job runs"
    )
    poll_startup_delay: float = Field(
        default=2.0, description="Delay before the first status check after a trigger"
    )
    integration_test_poll_interval: float = Field(
        default=15.0,
        description="Seconds between integration-test status checks",
    )

    # Analysis staleness
    staleness_tolerance_ms: int = Field(
        default=1000,
        description="Skew allowed between annotation and external comment clocks",
    )

    # Local state (selected project, pipeline handoffs)
    state_dir: Path = Field(default=Path.home() / ".ticket-pipeline")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
