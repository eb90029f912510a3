"""Workflow failure taxonomy, re-exported for orchestration callers."""

from core.domain.errors import (
    InvalidComplianceEvent,
    InvalidState,
    LedgerFailure,
    NotFound,
    PersistenceFailure,
    Unauthorized,
    UnknownWorkflow,
    ValidationFailure,
    WorkflowError,
)

__all__ = [
    "InvalidComplianceEvent",
    "InvalidState",
    "LedgerFailure",
    "NotFound",
    "PersistenceFailure",
    "Unauthorized",
    "UnknownWorkflow",
    "ValidationFailure",
    "WorkflowError",
]
