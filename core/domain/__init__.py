"""Domain layer - pure domain models and interfaces."""

from .errors import WorkflowError
from .events import AuditLogEntry, ComplianceEvent
from .ledger import LedgerAdapter, LedgerReceipt
from .repositories import PersistenceStore

__all__ = [
    "AuditLogEntry",
    "ComplianceEvent",
    "LedgerAdapter",
    "LedgerReceipt",
    "PersistenceStore",
    "WorkflowError",
]
