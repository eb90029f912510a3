from __future__ import annotations

from pydantic_settings import SettingsConfigDict

from core.settings.base_settings import JsonflowBaseSettings


class DatabaseSettings(JsonflowBaseSettings):
    """
    Database configuration settings.
    Loaded from .env with prefix DB_*
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="DB_",
        extra="ignore",
    )

    database_url: str = "sqlite+aiosqlite:///./jsonflow.db"

    # Connection pool settings (ignored by SQLite)
    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: int = 30
    pool_recycle: int = 3600  # 1 hour

    # Echo SQL (for debugging)
    echo_sql: bool = False
