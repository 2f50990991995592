"""Application settings loaded from environment variables."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Leadership Assessment"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"  # development, staging, production

    # Database
    DATABASE_URL: str = "sqlite:///./assessment.db"

    # Internal Token (HS256)
    SECRET_KEY: str = "change-me-in-production"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 720  # 12 hours
    ALGORITHM: str = "HS256"

    # Cookie settings
    COOKIE_NAME: str = "assessment_access_token"
    COOKIE_DOMAIN: Optional[str] = None  # None = use request domain
    COOKIE_SECURE: bool = True
    COOKIE_SAMESITE: str = "lax"

    # Claude AI
    ANTHROPIC_API_KEY: str = ""
    CLAUDE_MODEL: str = "claude-sonnet-4-5-20250929"
    CLAUDE_MAX_TOKENS: int = 1024
    CLAUDE_TIMEOUT_SECONDS: float = 15.0

    # Adaptive question pipeline
    ADAPTATION_TIMEOUT_SECONDS: float = 25.0
    EXTRACTION_TEMPERATURE: float = 0.3
    GENERATION_TEMPERATURE: float = 0.5
    AI_HELP_TEMPERATURE: float = 0.8

    # "keyword" or "keyword+term" (keyword only counts when term is also present)
    RELEVANCE_GUARD_TRIGGERS: list[str] = [
        "street dog",
        "stray dog",
        "dog bite",
        "dog attack",
        "street dogs",
        "stray+dog",
    ]

    # Rate limits (calls per window, window in seconds)
    SUGGEST_RATE_LIMIT: int = 10
    SUGGEST_RATE_WINDOW: int = 60
    AI_HELP_RATE_LIMIT: int = 20
    AI_HELP_RATE_WINDOW: int = 60
    ADAPT_RATE_LIMIT: int = 30
    ADAPT_RATE_WINDOW: int = 3600

    # Outbound queue retry policy
    ANALYTICS_MAX_ATTEMPTS: int = 1
    SCORING_MAX_ATTEMPTS: int = 3

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
