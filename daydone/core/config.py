"""Configuration management for daydone."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # SQLite Configuration
    sqlite_db_path: str = Field(default="./data/daydone.db", description="Path to the SQLite database file")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    environment: str = Field(default="development", description="Deployment environment name")

    # Leaderboard Configuration
    leaderboard_default_period: str = Field(
        default="week", description="Period used by the leaderboard endpoint when none is given"
    )


# Application Constants
class Constants:
    """Application-wide constants."""

    # HTTP Status Codes
    HTTP_OK: int = 200

    # Client-side placeholder ids for tasks that were never saved
    TEMP_ID_PREFIX: str = "temp-"

    # Gamification
    LEVEL_POINTS: int = 100  # Hours needed per level

    # Dashboard targets (hours)
    DAILY_TARGET_HOURS: float = 10
    WEEKLY_TARGET_HOURS: float = 70
    MONTHLY_TARGET_HOURS: float = 280

    # Leaderboard
    TOP_PERFORMERS_LIMIT: int = 3
    UNKNOWN_USER_NAME: str = "Unknown"

    # Calendar
    CALENDAR_YEAR_OPTIONS: int = 5  # Years offered in the year picker
    DAYS_PER_WEEK: int = 7

    # Pagination
    MAX_LIST_PAGE_SIZE: int = 1000  # Page size for queries that fetch every matching record


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
