"""Library configuration settings."""
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings loaded from DOCCRUD_* environment variables."""

    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_json: bool = True

    # Relational (table) backend
    database_url: str = "sqlite+aiosqlite:///./doccrud.db"

    # Document (collection) backend; falls back to database_url when empty
    collection_database_url: str = ""

    # Collation used by case-insensitive search (utf8mb4_0900_ai_ci on MySQL)
    ci_collation: str = "NOCASE"

    default_page_size: int = 50

    # Engine / pool
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 300
    pool_pre_ping: bool = True

    # Session time zone applied on MySQL connections, e.g. "+00:00"
    timezone: str | None = None

    healthcheck_timeout: float = 2.0  # seconds

    class Config:
        env_prefix = "DOCCRUD_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
