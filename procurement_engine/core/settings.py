from __future__ import annotations

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application-level settings for the procurement engine service.

    This is separate from procurement_engine.db.config.Settings, which focuses on the database layer.
    """

    # FastAPI metadata
    APP_NAME: str = Field(default="Procurement Engine API")
    APP_DESCRIPTION: str = Field(
        default=(
            "Material requirements and procurement resolution engine. "
            "Computes BOM buildability, classifies shortages and generates purchase requisitions."
        )
    )
    APP_VERSION: str = Field(default="0.1.0")

    # CORS
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or JSON array of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    CORS_ALLOW_METHODS: List[str] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: List[str] = Field(default_factory=lambda: ["*"])

    # Startup behavior
    RUN_MIGRATIONS_ON_STARTUP: bool = Field(
        default=True,
        description="If true, run Alembic migrations (upgrade head) at app startup.",
    )
    AUTO_SEED: bool = Field(
        default=False,
        description="If true, load the sample catalog after migrations.",
    )

    # Token verification (tokens are issued by the surrounding application)
    JWT_SECRET_KEY: str = Field(default="change-me")
    JWT_ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=30)

    # Procurement policy
    MINIMUM_BATCH_SIZE: int = Field(
        default=5,
        ge=1,
        description="Smallest assembly build target used when sizing BOM requisitions.",
    )
    BOM_MAX_DEPTH: int = Field(
        default=10,
        ge=1,
        description="Maximum BOM nesting followed by explosion and cycle detection.",
    )
    REQUISITION_NUMBER_PREFIX: str = Field(default="PR")
    SYSTEM_ACTOR_ID: str = Field(
        default="system",
        description="Actor recorded on requisitions created by sweeps.",
    )
    APPROVER_ROLES: List[str] = Field(
        default_factory=lambda: ["admin", "superadmin", "procurement:approve"]
    )
    CONVERTER_ROLES: List[str] = Field(
        default_factory=lambda: ["admin", "superadmin", "procurement:manage"]
    )

    # Environment label
    ENVIRONMENT: Optional[str] = Field(
        default=None, description="Environment label (dev/test/prod)"
    )

    # Automatically load from .env at runtime. The orchestrator will provide these.
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """
        Accept both JSON array format and comma-separated formats for CORS origins.
        """
        if v is None:
            return ["*"]
        if isinstance(v, str):
            # Try comma-separated
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return parts or ["*"]
        if isinstance(v, list):
            return v or ["*"]
        return ["*"]

    @field_validator("APPROVER_ROLES", "CONVERTER_ROLES", mode="before")
    @classmethod
    def _parse_roles(cls, v):
        if isinstance(v, str):
            return [p.strip() for p in v.split(",") if p.strip()]
        return v


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """
    Return a new AppSettings instance populated from environment variables.

    Note:
      For simplicity we construct a new instance each time. If caching is desired,
      we can add a module-level cache or lru_cache.
    """
    return AppSettings()
