"""Orchestration models - WorkflowContext, WorkflowResult, Collaborators."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any
import uuid

from core.domain.ledger import LedgerAdapter, LedgerReceipt
from core.domain.repositories import PersistenceStore, Record

if TYPE_CHECKING:
    from core.compliance import ComplianceLog


@dataclass(frozen=True)
class Collaborators:
    """Side-effect sinks of a workflow invocation, passed explicitly."""

    store: PersistenceStore
    ledger: LedgerAdapter
    compliance_log: "ComplianceLog"


@dataclass
class WorkflowContext:
    """Per-invocation state, discarded once the invocation returns."""

    workflow: str
    inputs: dict[str, Any]
    actor: str
    started_at: datetime
    execution_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    entity_id: str | None = None
    derived_ids: dict[str, str] = field(default_factory=dict)
    entities: dict[str, Record] = field(default_factory=dict)
    record: Record | None = None
    receipt: LedgerReceipt | None = None
    outputs: dict[str, Any] = field(default_factory=dict)

    def input(self, name: str, default: Any = None) -> Any:
        """Read a top-level input field."""
        return self.inputs.get(name, default)


@dataclass(frozen=True)
class WorkflowResult:
    """Result of a successful workflow execution."""

    outputs: dict[str, Any]
    success: bool = True
    execution_id: str | None = None

    def to_response(self) -> dict[str, Any]:
        """Success envelope of the workflow invocation surface."""
        return {"success": self.success, "outputs": dict(self.outputs)}
