"""
Configuration settings for Gradebook Ingest.

Uses Pydantic Settings to load environment variables for the database
connection, storage backend selection, logging, and ingestion/pagination
policy knobs.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("gradebook", alias="DB_NAME")
    db_pool_min_size: int = Field(1, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: int = Field(10, alias="DB_POOL_MAX_SIZE")
    db_connect_timeout: int = Field(5, alias="DB_CONNECT_TIMEOUT")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")
    store_backend: Literal["postgres", "memory"] = Field("postgres", alias="STORE_BACKEND")

    # Ingestion / query policy
    default_page_size: int = Field(50, alias="DEFAULT_PAGE_SIZE")
    max_page_size: int = Field(500, alias="MAX_PAGE_SIZE")
    enforce_score_bound: bool = Field(False, alias="ENFORCE_SCORE_BOUND")
    insert_batch_size: int = Field(1_000, alias="INSERT_BATCH_SIZE")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @computed_field  # type: ignore[misc]
    @property
    def dsn(self) -> str:
        """PostgreSQL connection string composed from the individual parts."""
        return (
            f"postgresql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
