from __future__ import annotations

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from core.settings.base_settings import JsonflowBaseSettings


ZERO_ADDRESS = "0x" + "0" * 40


class WorkflowSettings(JsonflowBaseSettings):
    """
    Settings for the workflow executor and schema registry.
    Loaded from .env with prefix WORKFLOW_*
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="WORKFLOW_",
        extra="ignore",
    )

    # None means the schemas bundled with the core package
    schema_dir: Optional[Path] = None
    critical_schemas: List[str] = Field(
        default_factory=lambda: ["compliance-event", "audit-log-entry"]
    )

    # Compliance userId for workflows whose subject is not an account address
    system_actor: str = Field(default=ZERO_ADDRESS, pattern=r"^(0x)?[0-9a-fA-F]{40}$")

    persistence_backend: Literal["memory", "sql"] = "memory"
    log_level: str = "INFO"

    # Seconds before a workflow's ledger submission counts as failed (None: no bound)
    ledger_timeout_seconds: Optional[float] = None
