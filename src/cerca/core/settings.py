"""Application settings and configuration.

Settings are loaded from environment variables (or an ``.env`` file) with
defaults suitable for a single-node forum backed by SQLite.
"""

from datetime import timedelta

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed settings for the moderation core."""

    # Database configuration
    database_url: str = Field(default="sqlite:///./cerca.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Reserved account that takes over references to removed users
    deleted_user_name: str = Field(default="deleted user", alias="DELETED_USER_NAME")

    # Quorum and proposal policy
    quorum_size: int = Field(default=2, alias="QUORUM_SIZE")
    proposal_self_confirmation_wait_seconds: int = Field(
        default=7 * 24 * 60 * 60,
        alias="PROPOSAL_SELF_CONFIRMATION_WAIT_SECONDS",
    )
    # False keeps a single pending proposal per action kind across all recipients.
    proposal_unique_per_recipient: bool = Field(
        default=False,
        alias="PROPOSAL_UNIQUE_PER_RECIPIENT",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def proposal_self_confirmation_wait(self) -> timedelta:
        """Return the self-confirmation delay as a timedelta."""
        return timedelta(seconds=self.proposal_self_confirmation_wait_seconds)

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for Alembic."""
        url = self.database_url
        if url.startswith("sqlite+aiosqlite"):
            return url.replace("sqlite+aiosqlite", "sqlite", 1)
        return url


settings = Settings()
