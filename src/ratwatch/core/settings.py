"""Application settings and configuration.

This module defines all configuration options for the Rat Watch service.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Rat Watch", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database configuration
    database_url: str = Field(default="sqlite:///./ratwatch.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Deadline scheduler
    scheduler_enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")
    scheduler_interval_seconds: float = Field(default=30.0, alias="SCHEDULER_INTERVAL_SECONDS")
    scheduler_startup_delay_seconds: float = Field(
        default=15.0,
        alias="SCHEDULER_STARTUP_DELAY_SECONDS",
    )
    # Deadlines missed by more than this are expired instead of fired late.
    deadline_grace_seconds: int = Field(default=300, alias="DEADLINE_GRACE_SECONDS")
    max_concurrent_executions: int = Field(default=5, alias="MAX_CONCURRENT_EXECUTIONS")
    execution_timeout_seconds: float = Field(default=30.0, alias="EXECUTION_TIMEOUT_SECONDS")

    # Voting window
    voting_duration_minutes: int = Field(default=5, alias="VOTING_DURATION_MINUTES")
    tie_verdict: Literal["guilty", "not_guilty"] = Field(
        default="not_guilty",
        alias="TIE_VERDICT",
    )

    # Watch creation limits
    max_advance_hours: int = Field(default=24, alias="MAX_ADVANCE_HOURS")
    # Bounded by the width of the watch.custom_message column.
    custom_message_max_length: int = Field(default=200, ge=1, le=200, alias="CUSTOM_MESSAGE_MAX_LENGTH")

    # Statistics
    recent_records_limit: int = Field(default=5, alias="RECENT_RECORDS_LIMIT")
    leaderboard_default_limit: int = Field(default=10, alias="LEADERBOARD_DEFAULT_LIMIT")
    message_link_template: str = Field(
        default="https://discord.com/channels/{group_id}/{channel_id}/{message_id}",
        alias="MESSAGE_LINK_TEMPLATE",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()
