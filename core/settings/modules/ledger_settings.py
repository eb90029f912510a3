from __future__ import annotations

from typing import Optional

from pydantic_settings import SettingsConfigDict

from core.settings.base_settings import JsonflowBaseSettings


class LedgerSettings(JsonflowBaseSettings):
    """
    Settings for the ledger gateway.
    Loaded from .env with prefix LEDGER_*

    Without rpc_url the in-memory fallback adapter is used.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LEDGER_",
        extra="ignore",
    )

    rpc_url: Optional[str] = None
    api_key: Optional[str] = None
    timeout_seconds: float = 10.0
    default_reputation: float = 100.0

    @property
    def enabled(self) -> bool:
        return bool(self.rpc_url)
