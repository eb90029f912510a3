"""Domain enumerations."""

from .compliance import AuditAction, ComplianceEventType, ComplianceModule
from .execution_status import ExecutionStatus

__all__ = [
    "AuditAction",
    "ComplianceEventType",
    "ComplianceModule",
    "ExecutionStatus",
]
