# Settings modules
from .app_settings import AppSettings, get_app_settings
from .database_settings import DatabaseSettings
from .ledger_settings import LedgerSettings
from .workflow_settings import ZERO_ADDRESS, WorkflowSettings

__all__ = [
    "AppSettings",
    "get_app_settings",
    "DatabaseSettings",
    "LedgerSettings",
    "WorkflowSettings",
    "ZERO_ADDRESS",
]
