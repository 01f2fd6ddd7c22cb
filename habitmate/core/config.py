"""Configuration management for habitmate."""

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

    # Database Configuration
    sqlite_db_path: str = Field(default="./habitmate_data/habitmate.db", description="SQLite database file path")

    # Photo Storage Configuration
    photo_storage_dir: str = Field(
        default="./habitmate_data/storage", description="Root directory for uploaded proof photos"
    )
    photo_bucket: str = Field(default="task-photos", description="Bucket name proof photos are stored under")
    photo_public_base_url: str = Field(
        default="http://127.0.0.1:8000/storage/v1/object/public",
        description="Public URL prefix that bucket paths are appended to",
    )

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="development", description="Deployment environment name")

    # Feed Configuration
    feed_post_limit: int = Field(default=50, description="Maximum number of posts returned per feed query")

    # Time Configuration
    timezone: str | None = Field(
        default=None,
        description="IANA timezone used for calendar dates (e.g. 'Europe/Berlin'); system local when unset",
    )

    # Auth Session Configuration
    session_ttl_minutes: int = Field(default=60, description="Lifetime of an access token before it must refresh")


# Application Constants
class Constants:
    """Application-wide constants."""

    # HTTP Status Codes
    HTTP_OK: int = 200
    HTTP_BAD_REQUEST: int = 400
    HTTP_SERVER_ERROR: int = 500

    # Streaks
    STREAK_LOOKBACK_LIMIT: int = 1000  # Max days walked back when counting a streak

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 100  # Default pagination limit for list queries
    MAX_PER_PAGE_LIMIT: int = 1000  # Upper bound for "fetch everything" queries

    # User Search
    MAX_SEARCH_RESULTS: int = 20
    MIN_SEARCH_QUERY_LENGTH: int = 1

    # Photo Uploads
    PHOTO_CACHE_CONTROL_SECONDS: int = 3600
    DEFAULT_PHOTO_EXTENSION: str = "jpg"
    PHOTO_RANDOM_SUFFIX_LENGTH: int = 6

    # Avatars
    AVATAR_FALLBACK_URL: str = "https://ui-avatars.com/api/?name="


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
