import logging

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_MODEL: str = "claude-sonnet-4-5"
    CONTENT_TIMEOUT_SECONDS: float = 8.0
    CONTENT_RETRIES: int = 1
    CONTENT_BACKOFF_SECONDS: float = 1.0
    CONTENT_MAX_TOKENS: int = 1200

    # Time estimate shown to pollers: remaining percent * this.
    SECONDS_PER_PERCENT: float = 0.6
    DOWNLOAD_RETENTION_SECONDS: float = 60.0
    DEFAULT_CHAPTER_COUNT: int = 5
    DEFAULT_SECTIONS_PER_CHAPTER: int = 3

    JOB_STORE: str = "memory"  # memory|sql
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/jobs.db"

    CORS_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"
    REQUEST_ID_HEADER: str = "X-Request-ID"
    ENVIRONMENT: str = "development"

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()

if not settings.ANTHROPIC_API_KEY:
    logger.warning(
        "ANTHROPIC_API_KEY is not set. Report chapters will use fallback content until configured."
    )
