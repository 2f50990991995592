"""Processor configuration settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class ProcessorSettings(BaseSettings):
    """Settings for the processor service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite:///./assessment.db"

    # Queue/Worker
    QUEUE_MAX_CONCURRENCY: int = 5  # Parallel job limit
    QUEUE_MAX_ATTEMPTS: int = 3  # Default retry limit
    QUEUE_POLL_INTERVAL: int = 5  # Seconds between queue checks when idle
    QUEUE_RETRY_BASE_DELAY: int = 30  # Base delay for exponential backoff (seconds)

    # Maintenance
    MAINTENANCE_INTERVAL: int = 60  # Seconds between maintenance passes
    STUCK_JOB_MINUTES: int = 30
    COMPLETED_JOB_RETENTION_HOURS: int = 24
    STUCK_ASSESSMENT_MINUTES: int = 5

    # Outbound queue retry policies
    SCORING_MAX_ATTEMPTS: int = 3
    ANALYTICS_MAX_ATTEMPTS: int = 1

    # Claude AI
    ANTHROPIC_API_KEY: Optional[str] = None
    CLAUDE_MODEL: str = "claude-sonnet-4-5-20250929"
    CLAUDE_MAX_TOKENS: int = 1024
    CLAUDE_TIMEOUT_SECONDS: float = 60.0
    SCORING_TEMPERATURE: float = 0.3

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"


@lru_cache
def get_settings() -> ProcessorSettings:
    """Get cached settings instance."""
    return ProcessorSettings()


settings = get_settings()
