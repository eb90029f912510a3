"""Orchestration layer - schema-driven workflow execution."""

from core.compliance import ComplianceLog
from core.domain.repositories import PersistenceStore
from core.infrastructure.adapters.ledger import create_ledger_adapter
from core.infrastructure.adapters.persistence import InMemoryPersistenceStore
from core.settings import AppSettings, WorkflowSettings
from core.validation import SchemaRegistry

from .catalog import WORKFLOWS, build_workflow_registry
from .errors import (
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
from .executor import WorkflowExecutor
from .models import Collaborators, WorkflowContext, WorkflowResult
from .workflow import (
    AggregateUpdateStep,
    AuditStep,
    ExternalCallStep,
    PersistStep,
    Requirement,
    StepKind,
    ValidateStep,
    WorkflowDefinition,
    WorkflowDefinitionError,
    WorkflowRegistry,
)

__all__ = [
    "AggregateUpdateStep",
    "AuditStep",
    "Collaborators",
    "ExternalCallStep",
    "InvalidComplianceEvent",
    "InvalidState",
    "LedgerFailure",
    "NotFound",
    "PersistStep",
    "PersistenceFailure",
    "Requirement",
    "StepKind",
    "Unauthorized",
    "UnknownWorkflow",
    "ValidateStep",
    "ValidationFailure",
    "WORKFLOWS",
    "WorkflowContext",
    "WorkflowDefinition",
    "WorkflowDefinitionError",
    "WorkflowError",
    "WorkflowExecutor",
    "WorkflowRegistry",
    "WorkflowResult",
    "build_collaborators",
    "build_executor",
    "build_schema_registry",
    "build_workflow_registry",
]


def build_schema_registry(settings: WorkflowSettings) -> SchemaRegistry:
    """Create a schema registry and load every schema file.

    Args:
        settings: Workflow settings (schema directory, critical schemas)

    Returns:
        Loaded SchemaRegistry

    Raises:
        SchemaRegistryError: If a critical schema cannot be loaded
    """
    registry = SchemaRegistry(settings.schema_dir, settings.critical_schemas)
    registry.load_all()
    return registry


def build_collaborators(
    settings: AppSettings,
    schema_registry: SchemaRegistry,
    store: PersistenceStore | None = None,
) -> Collaborators:
    """Create the store, ledger and compliance log for the configured environment.

    Args:
        settings: Application settings
        schema_registry: Registry used by the compliance log
        store: Persistence store to use instead of the in-memory one

    Returns:
        Collaborators bundle
    """
    ledger = create_ledger_adapter(settings.ledger)
    return Collaborators(
        store=store if store is not None else InMemoryPersistenceStore(),
        ledger=ledger,
        compliance_log=ComplianceLog(
            ledger,
            schema_registry,
            ledger_timeout=settings.workflow.ledger_timeout_seconds,
        ),
    )


def build_executor(settings: AppSettings, schema_registry: SchemaRegistry) -> WorkflowExecutor:
    """Create an executor over the full workflow catalog.

    Args:
        settings: Application settings
        schema_registry: Loaded schema registry

    Returns:
        WorkflowExecutor instance
    """
    return WorkflowExecutor(
        registry=build_workflow_registry(),
        schema_registry=schema_registry,
        ledger_timeout=settings.workflow.ledger_timeout_seconds,
        system_actor=settings.workflow.system_actor,
    )
