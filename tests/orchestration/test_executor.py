"""Tests for WorkflowExecutor - ordering, failure semantics and audit trail."""

import asyncio
import json
import uuid

import pytest

from core.compliance import ComplianceLog
from core.domain.errors import (
    InvalidComplianceEvent,
    LedgerFailure,
    NotFound,
    PersistenceFailure,
    Unauthorized,
    UnknownWorkflow,
    ValidationFailure,
    WorkflowError,
)
from core.domain.repositories import PersistenceStoreError
from core.infrastructure.adapters.ledger import InMemoryLedgerAdapter
from core.infrastructure.adapters.persistence import InMemoryPersistenceStore
from orchestration import Collaborators, WorkflowExecutor, build_workflow_registry


ALICE = "0x" + "a1" * 20
ZERO = "0x" + "0" * 40

DONATION = {"sid": "s1", "resource": {"amount": 5}}
VOUCHER = {"creatorSID": "s1", "value": {"amount": "1.0", "assetType": "ETH"}, "password": "pw"}


def terminal_entries(compliance_log: ComplianceLog):
    return [entry for entry in compliance_log.audit_entries if entry.is_terminal]


class FailingStore(InMemoryPersistenceStore):
    """Store whose writes (or increments) can be made to fail."""

    def __init__(self, fail_writes: bool = False, fail_increments: bool = False) -> None:
        super().__init__()
        self.fail_writes = fail_writes
        self.fail_increments = fail_increments

    async def insert(self, collection, record):
        if self.fail_writes:
            raise PersistenceStoreError("disk full")
        return await super().insert(collection, record)

    async def increment(self, collection, filter_, field, amount, upsert=True, baseline=0):
        if self.fail_increments:
            raise PersistenceStoreError("aggregate table locked")
        return await super().increment(collection, filter_, field, amount, upsert, baseline)


class SlowLedger:
    """Ledger whose submissions never finish in time."""

    def __init__(self, inner) -> None:
        self.inner = inner

    async def submit(self, method, params):
        await asyncio.sleep(1)
        return await self.inner.submit(method, params)

    async def log_event(self, event_id, event_data):
        return await self.inner.log_event(event_id, event_data)


# =============================================================================
# VALIDATE BEFORE EFFECT
# =============================================================================

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "inputs",
    [
        {"resource": {"amount": 5}},
        {"sid": "s1", "resource": {"amount": "five"}},
        {"sid": "s1", "resource": {"amount": 5, "type": "quantum"}},
        {"sid": "s1", "resource": {"amount": 5}, "unexpected": True},
        "not-an-object",
    ],
)
async def test_malformed_input_has_no_effects(executor, collaborators, store, ledger, compliance_log, inputs):
    with pytest.raises(ValidationFailure) as exc_info:
        await executor.execute("computing-donation", inputs, collaborators)

    assert exc_info.value.tier == "input"
    assert exc_info.value.errors
    assert store.count("donations") == 0
    assert store.count("pulse") == 0
    assert ledger.calls == []
    assert compliance_log.events == []
    assert len(compliance_log.find_audit(action="event_validation", status="failed")) == 1


@pytest.mark.asyncio
async def test_validation_failure_envelope(executor, collaborators):
    response = await executor.invoke("computing-donation", {"sid": "s1"}, collaborators)

    assert response["success"] is False
    assert response["errorKind"] == "validation_failure"
    assert response["tier"] == "input"
    assert response["details"][0]["keyword"] == "required"
    assert response["details"][0]["params"] == {"required": ["sid", "resource"]}


# =============================================================================
# EXACTLY ONE TERMINAL AUDIT ENTRY
# =============================================================================

@pytest.mark.asyncio
async def test_success_writes_one_terminal_entry(executor, collaborators, compliance_log):
    result = await executor.execute("computing-donation", DONATION, collaborators)

    terminals = terminal_entries(compliance_log)
    assert len(terminals) == 1
    assert terminals[0].kind == "workflow_execution:success"
    assert terminals[0].details["executionId"] == result.execution_id
    assert terminals[0].details["eventType"] == "donation_recorded"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "workflow, inputs, expected",
    [
        ("computing-donation", {"sid": 1}, ValidationFailure),
        ("no-such-workflow", {}, UnknownWorkflow),
        ("pulse-score", {"sid": "nobody"}, NotFound),
        ("voucher-redeem", {"voucherId": str(uuid.uuid4()), "redeemerSID": "s", "password": "p"}, NotFound),
    ],
)
async def test_failure_writes_one_terminal_entry(executor, collaborators, compliance_log, workflow, inputs, expected):
    with pytest.raises(expected) as exc_info:
        await executor.execute(workflow, inputs, collaborators)

    terminals = terminal_entries(compliance_log)
    assert len(terminals) == 1
    assert terminals[0].kind == "error_handling:failed"
    assert terminals[0].details["errorKind"] == exc_info.value.kind
    assert terminals[0].details["message"] == exc_info.value.message


@pytest.mark.asyncio
async def test_each_invocation_gets_its_own_terminal_entry(executor, collaborators, compliance_log):
    await executor.execute("computing-donation", DONATION, collaborators)
    with pytest.raises(ValidationFailure):
        await executor.execute("computing-donation", {}, collaborators)
    await executor.execute("pulse-score", {"sid": "s1"}, collaborators)

    kinds = [entry.kind for entry in terminal_entries(compliance_log)]
    assert kinds == [
        "workflow_execution:success",
        "error_handling:failed",
        "workflow_execution:success",
    ]
    execution_ids = {entry.details["executionId"] for entry in terminal_entries(compliance_log)}
    assert len(execution_ids) == 3


# =============================================================================
# SUCCESS IMPLIES COMPLIANCE
# =============================================================================

@pytest.mark.asyncio
async def test_successful_mutation_writes_one_compliance_event(executor, collaborators, compliance_log, ledger):
    result = await executor.execute("computing-donation", DONATION, collaborators)

    assert len(compliance_log.events) == 1
    event = compliance_log.events[0]
    assert event.event_type == "donation_recorded"
    assert event.user_id == ZERO
    assert event.context.module == "computing"
    assert json.loads(event.payload) == {
        "donationId": result.outputs["donationId"],
        "pulseReward": 50,
    }
    assert ledger.calls_to("logEvent")[0][0] == event.id


@pytest.mark.asyncio
async def test_actor_field_becomes_compliance_user(executor, collaborators, compliance_log):
    await executor.execute("voucher-create", {**VOUCHER, "actor": ALICE}, collaborators)

    assert compliance_log.events[0].user_id == ALICE


@pytest.mark.asyncio
async def test_configured_system_actor(schema_registry, collaborators, compliance_log):
    system = "0x" + "5" * 40
    executor = WorkflowExecutor(build_workflow_registry(), schema_registry, system_actor=system)

    await executor.execute("pulse-quest", {"sid": "s1", "quest": {"type": "daily", "reward": 1}}, collaborators)

    assert compliance_log.events[0].user_id == system


@pytest.mark.asyncio
async def test_read_only_workflow_writes_no_compliance_event(executor, collaborators, compliance_log, store):
    await store.increment("pulse", {"sid": "s1"}, "pulseScore", 3)

    result = await executor.execute("pulse-score", {"sid": "s1"}, collaborators)

    assert result.outputs == {"sid": "s1", "pulseScore": 3}
    assert compliance_log.events == []


@pytest.mark.asyncio
async def test_invalid_system_actor_fails_at_audit(schema_registry, collaborators, compliance_log, store):
    executor = WorkflowExecutor(build_workflow_registry(), schema_registry, system_actor="system")

    with pytest.raises(InvalidComplianceEvent):
        await executor.execute("computing-donation", DONATION, collaborators)

    assert store.count("donations") == 1
    assert compliance_log.events == []
    assert terminal_entries(compliance_log)[0].details["errorKind"] == "invalid_compliance_event"


# =============================================================================
# NO ROLLBACK ON LEDGER FAILURE
# =============================================================================

@pytest.mark.asyncio
async def test_ledger_failure_keeps_persisted_record(executor, collaborators, store, ledger, compliance_log):
    ledger.force_failure("rpc down", methods={"createVoucher"})

    with pytest.raises(LedgerFailure) as exc_info:
        await executor.execute("voucher-create", VOUCHER, collaborators)

    voucher_id = exc_info.value.persisted_record_id
    assert voucher_id is not None
    record = await store.find_one("vouchers", {"voucherId": voucher_id})
    assert record is not None
    assert record["status"] == "created"
    assert exc_info.value.to_response()["details"]["persistedRecordId"] == voucher_id
    assert compliance_log.events == []

    failures = compliance_log.find_audit(action="blockchain_submission", status="failed")
    assert len(failures) == 1
    assert failures[0].details["error"] == "rpc down"
    assert failures[0].details["persistedRecordId"] == voucher_id


@pytest.mark.asyncio
async def test_ledger_timeout_is_a_ledger_failure(schema_registry, store, ledger):
    slow = SlowLedger(ledger)
    collaborators = Collaborators(store=store, ledger=slow, compliance_log=ComplianceLog(slow, schema_registry))
    executor = WorkflowExecutor(build_workflow_registry(), schema_registry, ledger_timeout=0.01)

    with pytest.raises(LedgerFailure) as exc_info:
        await executor.execute("voucher-create", VOUCHER, collaborators)

    assert "timed out" in exc_info.value.message
    assert store.count("vouchers") == 1


@pytest.mark.asyncio
async def test_identity_check_timeout_is_a_ledger_failure(schema_registry, store):
    class StalledIdentityLedger(InMemoryLedgerAdapter):
        async def verify_identity(self, subject_id, credential_id):
            await asyncio.sleep(1)
            return True

    ledger = StalledIdentityLedger()
    collaborators = Collaborators(store=store, ledger=ledger, compliance_log=ComplianceLog(ledger, schema_registry))
    executor = WorkflowExecutor(build_workflow_registry(), schema_registry, ledger_timeout=0.01)
    post = {
        "userId": ALICE,
        "soulboundId": "sbt-1",
        "channel": "general",
        "payload": {"content": "hello"},
    }

    with pytest.raises(LedgerFailure) as exc_info:
        await executor.execute("feed-post", post, collaborators)

    assert "verifyIdentity timed out" in exc_info.value.message
    assert store.count("posts") == 0
    assert ledger.calls_to("registerPost") == []


@pytest.mark.asyncio
async def test_compliance_forwarding_failure_reports_persisted_record(executor, collaborators, ledger, store):
    ledger.force_failure("event sink down", methods={"logEvent"})

    with pytest.raises(LedgerFailure) as exc_info:
        await executor.execute("computing-donation", DONATION, collaborators)

    donation = (await store.find("donations"))[0]
    assert exc_info.value.persisted_record_id == donation["donationId"]


# =============================================================================
# PERSISTENCE AND AGGREGATE FAILURES
# =============================================================================

@pytest.mark.asyncio
async def test_persistence_failure_is_fatal(schema_registry, ledger):
    store = FailingStore(fail_writes=True)
    compliance_log = ComplianceLog(ledger, schema_registry)
    collaborators = Collaborators(store=store, ledger=ledger, compliance_log=compliance_log)
    executor = WorkflowExecutor(build_workflow_registry(), schema_registry)

    with pytest.raises(PersistenceFailure):
        await executor.execute("voucher-create", VOUCHER, collaborators)

    assert ledger.calls_to("createVoucher") == []
    assert compliance_log.events == []
    assert len(compliance_log.find_audit(action="persistence", status="failed")) == 1


@pytest.mark.asyncio
async def test_aggregate_failure_is_best_effort(schema_registry, ledger):
    store = FailingStore(fail_increments=True)
    compliance_log = ComplianceLog(ledger, schema_registry)
    collaborators = Collaborators(store=store, ledger=ledger, compliance_log=compliance_log)
    executor = WorkflowExecutor(build_workflow_registry(), schema_registry)

    result = await executor.execute("computing-donation", DONATION, collaborators)

    assert result.success is True
    assert "pulseReward" not in result.outputs
    assert store.count("donations") == 1
    assert len(compliance_log.events) == 1
    assert len(compliance_log.find_audit(action="aggregate_update", status="failed")) == 1


# =============================================================================
# AGGREGATE IDEMPOTENT CREATE
# =============================================================================

@pytest.mark.asyncio
async def test_aggregate_created_at_baseline_then_summed(executor, collaborators, store):
    await executor.execute("pulse-quest", {"sid": "s9", "quest": {"type": "daily", "reward": 4}}, collaborators)
    result = await executor.execute("pulse-quest", {"sid": "s9", "quest": {"type": "weekly", "reward": 6}}, collaborators)

    assert result.outputs["pulseScore"] == 10
    assert (await store.find_one("pulse", {"sid": "s9"}))["pulseScore"] == 10


# =============================================================================
# IDS, UPSERTS AND UNEXPECTED ERRORS
# =============================================================================

@pytest.mark.asyncio
async def test_supplied_id_is_honored_and_upserted(executor, collaborators, store):
    donation_id = str(uuid.uuid4())

    first = await executor.execute("computing-donation", {**DONATION, "donationId": donation_id}, collaborators)
    second = await executor.execute(
        "computing-donation",
        {"sid": "s1", "resource": {"amount": 1}, "donationId": donation_id},
        collaborators,
    )

    assert first.outputs["donationId"] == second.outputs["donationId"] == donation_id
    records = await store.find("donations")
    assert len(records) == 1
    assert records[0]["resource"] == {"amount": 1}
    assert "createdAt" in records[0]


@pytest.mark.asyncio
async def test_generated_ids_are_fresh(executor, collaborators):
    first = await executor.execute("computing-donation", DONATION, collaborators)
    second = await executor.execute("computing-donation", DONATION, collaborators)

    assert first.outputs["donationId"] != second.outputs["donationId"]
    uuid.UUID(first.outputs["donationId"])


@pytest.mark.asyncio
async def test_reputation_gate(executor, collaborators, ledger, store):
    ledger.set_reputation(ALICE, 9)
    inputs = {"platformId": "chat", "creator": ALICE, "participants": ["0x" + "b" * 40]}

    with pytest.raises(Unauthorized):
        await executor.execute("messaging-start-conversation", inputs, collaborators)
    assert store.count("conversations") == 0

    ledger.set_reputation(ALICE, 10)
    result = await executor.execute("messaging-start-conversation", inputs, collaborators)
    assert result.outputs["platformId"] == "chat"


@pytest.mark.asyncio
async def test_unexpected_exception_is_wrapped(schema_registry, ledger):
    class BrokenStore(InMemoryPersistenceStore):
        async def insert(self, collection, record):
            raise RuntimeError("unexpected")

    compliance_log = ComplianceLog(ledger, schema_registry)
    collaborators = Collaborators(store=BrokenStore(), ledger=ledger, compliance_log=compliance_log)
    executor = WorkflowExecutor(build_workflow_registry(), schema_registry)

    response = await executor.invoke("computing-donation", DONATION, collaborators)

    assert response["success"] is False
    assert response["errorKind"] == "internal_error"
    assert terminal_entries(compliance_log)[0].details["errorKind"] == "internal_error"
    with pytest.raises(WorkflowError):
        await executor.execute("computing-donation", DONATION, collaborators)
