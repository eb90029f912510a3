"""Shared fixtures: schema registry, fallback collaborators and executor."""

import pytest

from core.compliance import ComplianceLog
from core.infrastructure.adapters.ledger import InMemoryLedgerAdapter
from core.infrastructure.adapters.persistence import InMemoryPersistenceStore
from core.validation import SchemaRegistry
from orchestration import Collaborators, WorkflowExecutor, build_workflow_registry


@pytest.fixture(scope="session")
def schema_registry() -> SchemaRegistry:
    """Registry over the bundled schemas (read-only, shared by all tests)."""
    registry = SchemaRegistry()
    registry.load_all()
    return registry


@pytest.fixture
def ledger() -> InMemoryLedgerAdapter:
    return InMemoryLedgerAdapter()


@pytest.fixture
def store() -> InMemoryPersistenceStore:
    return InMemoryPersistenceStore()


@pytest.fixture
def compliance_log(ledger, schema_registry) -> ComplianceLog:
    return ComplianceLog(ledger, schema_registry)


@pytest.fixture
def collaborators(store, ledger, compliance_log) -> Collaborators:
    return Collaborators(store=store, ledger=ledger, compliance_log=compliance_log)


@pytest.fixture
def executor(schema_registry) -> WorkflowExecutor:
    return WorkflowExecutor(build_workflow_registry(), schema_registry)
