from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, ConfigDict

from core.settings.modules.database_settings import DatabaseSettings
from core.settings.modules.ledger_settings import LedgerSettings
from core.settings.modules.workflow_settings import WorkflowSettings


class AppSettings(BaseModel):
    """Application settings aggregator."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="ignore")

    workflow: WorkflowSettings
    ledger: LedgerSettings
    database: DatabaseSettings


@lru_cache()
def get_app_settings() -> AppSettings:
    return AppSettings(
        workflow=WorkflowSettings(),
        ledger=LedgerSettings(),
        database=DatabaseSettings(),
    )
