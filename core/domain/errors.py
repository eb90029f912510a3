"""
Workflow Error Taxonomy.

Every failure raised to callers carries a kind (stable string used in
the invocation envelope) and an HTTP-equivalent status code.
"""
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

if TYPE_CHECKING:
    from core.domain.ledger import LedgerReceipt
    from core.validation.schema_registry import ValidationError


class WorkflowError(Exception):
    """Base class for all workflow failures."""
    
    kind = "internal_error"
    status_code = 500
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
    
    def to_response(self) -> Dict[str, Any]:
        """Failure envelope of the workflow invocation surface."""
        response: Dict[str, Any] = {
            "success": False,
            "errorKind": self.kind,
            "message": self.message,
        }
        if self.details:
            response["details"] = self.details
        return response


class ValidationFailure(WorkflowError):
    """Input (or prospective record) does not conform to its schema."""
    
    kind = "validation_failure"
    status_code = 400
    
    def __init__(
        self,
        message: str,
        errors: Sequence["ValidationError"],
        schema: str,
        tier: str = "input",
    ):
        super().__init__(message)
        self.errors: List["ValidationError"] = list(errors)
        self.schema = schema
        self.tier = tier
    
    def to_response(self) -> Dict[str, Any]:
        response = super().to_response()
        response["tier"] = self.tier
        response["details"] = [error.to_dict() for error in self.errors]
        return response


class PersistenceFailure(WorkflowError):
    """The persistence store rejected or failed a write."""
    
    kind = "persistence_failure"
    status_code = 500


class LedgerFailure(WorkflowError):
    """
    The ledger rejected or failed to process a call (timeouts included).
    
    A record persisted earlier in the same invocation is left in place;
    persisted_record_id tells the caller which one needs reconciliation.
    """
    
    kind = "ledger_failure"
    status_code = 500
    
    def __init__(
        self,
        message: str,
        receipt: Optional["LedgerReceipt"] = None,
        persisted_record_id: Optional[str] = None,
    ):
        details: Dict[str, Any] = {}
        if receipt is not None:
            details["receipt"] = receipt.to_dict()
        if persisted_record_id is not None:
            details["persistedRecordId"] = persisted_record_id
        super().__init__(message, details)
        self.receipt = receipt
        self.persisted_record_id = persisted_record_id


class InvalidComplianceEvent(WorkflowError):
    """A compliance event violated its own invariants."""
    
    kind = "invalid_compliance_event"
    status_code = 400


class NotFound(WorkflowError):
    """A referenced entity does not exist."""
    
    kind = "not_found"
    status_code = 404


class UnknownWorkflow(NotFound):
    """No workflow is registered under the requested name."""
    
    kind = "unknown_workflow"


class Unauthorized(WorkflowError):
    """The actor may not perform this action on the entity."""
    
    kind = "unauthorized"
    status_code = 403


class InvalidState(WorkflowError):
    """The entity is not in a state that allows this action."""
    
    kind = "invalid_state"
    status_code = 409
