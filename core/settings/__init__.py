# Settings package
from core.settings.modules import (
    AppSettings,
    DatabaseSettings,
    LedgerSettings,
    WorkflowSettings,
    get_app_settings,
)

__all__ = [
    "get_app_settings",
    "AppSettings",
    "DatabaseSettings",
    "LedgerSettings",
    "WorkflowSettings",
]
