"""Application configuration via Pydantic Settings."""

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-level settings loaded from environment variables.

    Per-run crawl configuration (cities, filters, sources) lives in the
    persisted ScraperConfig row, not here.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./propwatch.db"

    @model_validator(mode="after")
    def fix_database_url(self) -> "Settings":
        """Hosted Postgres hands out postgresql:// but asyncpg needs postgresql+asyncpg://"""
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            self.DATABASE_URL = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif url.startswith("postgres://"):
            self.DATABASE_URL = url.replace("postgres://", "postgresql+asyncpg://", 1)
        return self

    # App
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Rate limiting (shared by every source)
    RATE_LIMIT_REQUESTS_PER_MINUTE: int = 10
    RATE_LIMIT_COOLDOWN_MS: int = 6000

    # Headless browser
    BROWSER_HEADLESS: bool = True
    BROWSER_NAVIGATION_TIMEOUT_MS: int = 60000
    BROWSER_SETTLE_MS: int = 5000
    BROWSER_SELECTOR_TIMEOUT_MS: int = 10000

    # Fetch retries
    FETCH_MAX_RETRIES: int = 3
    FETCH_RETRY_BASE_DELAY_S: float = 2.0

    # Plain HTTP sources
    HTTP_TIMEOUT_S: float = 30.0

    # Run bookkeeping
    STALE_RUN_TIMEOUT_MINUTES: int = 180  # 0 disables the sweep
    RUN_ERROR_MESSAGE_MAX_LENGTH: int = 500


settings = Settings()
