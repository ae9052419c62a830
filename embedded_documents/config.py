"""Typed settings configuration - single source of truth."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class EmbeddingSettings(BaseSettings):
    """Settings loaded from ``EMBEDDING_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="EMBEDDING_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Mass assignment: what to do with keys that name no declared attribute
    unknown_attributes: Literal["ignore", "raise"] = "ignore"

    # Database
    database_url: str | None = None
    echo_sql: bool = False


@lru_cache
def get_settings() -> EmbeddingSettings:
    """Get cached settings instance."""
    return EmbeddingSettings()
