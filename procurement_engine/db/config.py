from __future__ import annotations

import re
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings for database configuration and general environment.

    Reads from environment variables (or .env via pydantic-settings):
      - DATABASE_URL (takes precedence; postgresql:// or sqlite:// URLs)
      - POSTGRES_URL
      - POSTGRES_USER
      - POSTGRES_PASSWORD
      - POSTGRES_DB
      - POSTGRES_PORT
    """

    DATABASE_URL: Optional[str] = Field(
        default=None, description="Full database URL; overrides the POSTGRES_* parts."
    )

    POSTGRES_URL: Optional[str] = Field(
        default=None, description="If provided, full PostgreSQL connection URL."
    )
    POSTGRES_USER: Optional[str] = Field(default=None, description="DB username")
    POSTGRES_PASSWORD: Optional[str] = Field(default=None, description="DB password")
    POSTGRES_DB: Optional[str] = Field(default=None, description="Database name")
    POSTGRES_PORT: Optional[int] = Field(
        default=5432, description="Database port (default 5432)"
    )
    POSTGRES_HOST: Optional[str] = Field(
        default="localhost", description="Database host (default localhost)"
    )

    # SQLAlchemy engine options
    SQL_ECHO: bool = Field(
        default=False, description="Echo SQL statements for debugging (default False)"
    )

    # General environment
    ENVIRONMENT: Optional[str] = Field(
        default=None, description="Environment label (dev/test/prod)"
    )

    # Automatically load from .env at runtime. The orchestrator will provide these.
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @property
    def database_url(self) -> str:
        """
        Compute the base (sync-neutral) database URL. Prefers DATABASE_URL, then
        POSTGRES_URL, otherwise constructs one from individual POSTGRES_* variables.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL
        if self.POSTGRES_URL:
            return self.POSTGRES_URL

        if not all([self.POSTGRES_USER, self.POSTGRES_PASSWORD, self.POSTGRES_DB]):
            raise ValueError(
                "Database configuration missing. Ensure DATABASE_URL, POSTGRES_URL or "
                "POSTGRES_USER, POSTGRES_PASSWORD, and POSTGRES_DB are set in the environment."
            )
        host = self.POSTGRES_HOST or "localhost"
        port = self.POSTGRES_PORT or 5432
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{host}:{port}/{self.POSTGRES_DB}"

    @property
    def async_database_url(self) -> str:
        """
        Convert the base URL to an async driver URL (asyncpg or aiosqlite), required for AsyncEngine.
        """
        url = self.database_url
        if url.startswith("sqlite"):
            return re.sub(r"^sqlite(\+\w+)?://", "sqlite+aiosqlite://", url)
        if url.startswith("postgresql+asyncpg://"):
            return url
        # Replace any existing driver marker or bare scheme with +asyncpg
        return re.sub(r"^postgres(ql)?(\+\w+)?://", "postgresql+asyncpg://", url)

    @property
    def sync_database_url(self) -> str:
        """
        Provide a sync URL variant for Alembic offline mode. Async driver tags are stripped.
        """
        url = self.database_url
        if url.startswith("sqlite"):
            return re.sub(r"^sqlite\+\w+://", "sqlite://", url)
        return re.sub(r"^postgresql\+\w+://", "postgresql://", url)


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return a settings object for reuse across modules."""
    # Settings is cheap to construct; for simplicity, we return a new instance.
    return Settings()
