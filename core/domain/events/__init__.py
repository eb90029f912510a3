"""Domain events - compliance events and audit log entries."""

from .compliance import (
    DEFAULT_SOULBOUND_ID,
    AuditLogEntry,
    ComplianceContext,
    ComplianceEvent,
    utc_now_iso,
)

__all__ = [
    "DEFAULT_SOULBOUND_ID",
    "AuditLogEntry",
    "ComplianceContext",
    "ComplianceEvent",
    "utc_now_iso",
]
