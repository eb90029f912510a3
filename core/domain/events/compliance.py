"""
Compliance and Audit Records.

Two append-only trails:
- ComplianceEvent: business-meaningful action, mirrored to the ledger
- AuditLogEntry: executor-internal outcome (failures included), kept locally

Both are immutable once created.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union
import uuid

from core.domain.enums.compliance import TERMINAL_AUDIT_ACTIONS


DEFAULT_SOULBOUND_ID = "default-soulbound-id"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ComplianceContext:
    """Where a compliance event came from."""
    
    module: str
    soulbound_id: str = DEFAULT_SOULBOUND_ID
    transaction_id: Optional[str] = None
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "soulboundId": self.soulbound_id,
            "transactionId": self.transaction_id,
            "module": self.module,
        }


@dataclass(frozen=True)
class ComplianceEvent:
    """
    Record of a business action.
    
    One is produced per successful mutating workflow invocation.
    Invariants (checked by ComplianceLog before creation):
    - event_type belongs to ComplianceEventType
    - user_id matches ^(0x)?[0-9a-fA-F]{40}$
    - context.module belongs to ComplianceModule
    """
    
    event_type: str
    user_id: str
    payload: Union[str, Dict[str, Any]]
    context: ComplianceContext
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(default_factory=utc_now_iso)
    
    def to_dict(self) -> Dict[str, Any]:
        """
        Convert event to its wire representation.
        
        Used for:
        - compliance-event schema validation
        - Ledger forwarding
        - API responses
        """
        return {
            "id": self.id,
            "eventType": self.event_type,
            "userId": self.user_id,
            "payload": self.payload,
            "createdAt": self.created_at,
            "context": self.context.to_dict(),
        }


@dataclass(frozen=True)
class AuditLogEntry:
    """Record of an executor-internal outcome."""
    
    action: str
    details: Dict[str, Any]
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=utc_now_iso)
    
    @property
    def status(self) -> str:
        return self.details.get("status", "")
    
    @property
    def kind(self) -> str:
        """Action and status, e.g. 'blockchain_submission:failed'."""
        return f"{self.action}:{self.status}"
    
    @property
    def is_terminal(self) -> bool:
        """True for the single entry that closes a workflow invocation."""
        return self.action in {a.value for a in TERMINAL_AUDIT_ACTIONS}
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action,
            "timestamp": self.timestamp,
            "details": dict(self.details),
        }
