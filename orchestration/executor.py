"""Workflow executor - runs a named workflow against an input payload.

Steps run strictly in order:

    validate -> persist -> external-call -> aggregate-update -> audit

Failure semantics:
- validation, persistence: fatal, nothing after them runs
- ledger: fatal, the persisted record is NOT rolled back
- aggregate updates: best effort, audited and logged, execution continues

Every invocation ends with exactly one terminal audit entry:
workflow_execution:success or error_handling:failed.
"""

import asyncio
import copy
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from core.domain.enums import AuditAction, ExecutionStatus
from core.domain.errors import (
    LedgerFailure,
    NotFound,
    PersistenceFailure,
    Unauthorized,
    ValidationFailure,
    WorkflowError,
)
from core.domain.events import utc_now_iso
from core.domain.ledger import LedgerReceipt
from core.domain.repositories import PersistenceStoreError, Record, apply_mutation
from core.settings.modules.workflow_settings import ZERO_ADDRESS
from core.validation import SchemaRegistry

from .models import Collaborators, WorkflowContext, WorkflowResult
from .workflow import (
    AggregateUpdateStep,
    AuditStep,
    ExternalCallStep,
    PersistStep,
    ValidateStep,
    WorkflowDefinition,
    WorkflowRegistry,
)

logger = logging.getLogger(__name__)

FAILED = ExecutionStatus.FAILED
SUCCESS = ExecutionStatus.SUCCESS


class WorkflowExecutor:
    """Schema-driven executor for registered workflows.

    Holds no per-invocation state: any number of `execute` calls may be
    in flight at once against the same collaborators.
    """

    def __init__(
        self,
        registry: WorkflowRegistry,
        schema_registry: SchemaRegistry,
        ledger_timeout: float | None = None,
        system_actor: str = ZERO_ADDRESS,
    ) -> None:
        """Initialize executor.

        Args:
            registry: Workflow definitions by name
            schema_registry: Registry holding input, output and record schemas
            ledger_timeout: Seconds before a ledger call counts as failed
            system_actor: Compliance userId for workflows without an actor address
        """
        self.registry = registry
        self.schema_registry = schema_registry
        self.ledger_timeout = ledger_timeout
        self.system_actor = system_actor

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def execute(
        self,
        workflow_name: str,
        inputs: dict[str, Any],
        collaborators: Collaborators,
    ) -> WorkflowResult:
        """Execute a workflow.

        Args:
            workflow_name: Registered workflow name
            inputs: Workflow input payload
            collaborators: Store, ledger and compliance log for this call

        Returns:
            WorkflowResult with outputs

        Raises:
            WorkflowError: Typed failure (see core.domain.errors)
        """
        started_at = datetime.now(timezone.utc)
        execution_id = str(uuid.uuid4())
        compliance_log = collaborators.compliance_log
        definition: WorkflowDefinition | None = None
        ctx: WorkflowContext | None = None

        logger.info(f"[{execution_id}] Starting workflow {workflow_name}")

        try:
            definition = self.registry.get(workflow_name)
            ctx = WorkflowContext(
                workflow=workflow_name,
                inputs=copy.deepcopy(inputs) if isinstance(inputs, dict) else {},
                actor=self._resolve_actor(definition, inputs),
                started_at=started_at,
                execution_id=execution_id,
            )
            await self._run(definition, ctx, inputs, collaborators)
        except WorkflowError as e:
            error = e
        except Exception as e:
            logger.exception(f"[{execution_id}] Unexpected error in workflow {workflow_name}")
            error = WorkflowError(
                f"Workflow {workflow_name} failed: {e}",
                {"exception": type(e).__name__},
            )
            error.__cause__ = e
        else:
            duration_ms = self._duration_ms(started_at)
            compliance_log.audit_only(
                AuditAction.WORKFLOW_EXECUTION,
                SUCCESS,
                {
                    "executionId": execution_id,
                    "workflow": workflow_name,
                    "actor": ctx.actor,
                    "eventType": self._event_type(definition),
                    "durationMs": duration_ms,
                },
            )
            logger.info(f"[{execution_id}] Workflow {workflow_name} succeeded ({duration_ms}ms)")
            return WorkflowResult(outputs=ctx.outputs, success=True, execution_id=execution_id)

        compliance_log.audit_only(
            AuditAction.ERROR_HANDLING,
            FAILED,
            {
                "executionId": execution_id,
                "workflow": workflow_name,
                "errorKind": error.kind,
                "message": error.message,
                "eventType": self._event_type(definition),
                "actor": ctx.actor if ctx else None,
            },
        )
        logger.warning(
            f"[{execution_id}] Workflow {workflow_name} failed "
            f"({error.kind}): {error.message}"
        )
        raise error

    async def invoke(
        self,
        workflow_name: str,
        inputs: dict[str, Any],
        collaborators: Collaborators,
    ) -> dict[str, Any]:
        """Invocation surface for controllers.

        Returns:
            {"success": True, "outputs"} or
            {"success": False, "errorKind", "message", "details"?}
        """
        try:
            result = await self.execute(workflow_name, inputs, collaborators)
        except WorkflowError as e:
            return e.to_response()
        return result.to_response()

    # =========================================================================
    # PIPELINE
    # =========================================================================

    async def _run(
        self,
        definition: WorkflowDefinition,
        ctx: WorkflowContext,
        raw_inputs: Any,
        collaborators: Collaborators,
    ) -> None:
        await self._validate(definition, definition.validate_step, ctx, raw_inputs, collaborators)

        if definition.persist_step is not None:
            await self._persist(definition.persist_step, ctx, collaborators)

        if definition.external_call_step is not None:
            await self._external_call(definition.external_call_step, ctx, collaborators)

        for step in definition.aggregate_steps:
            await self._aggregate_update(step, ctx, collaborators)

        if definition.outputs is not None:
            ctx.outputs.update(definition.outputs(ctx))
        self._check_outputs(definition, ctx)

        if definition.audit_step is not None:
            await self._audit(definition.audit_step, ctx, collaborators)

    async def _validate(
        self,
        definition: WorkflowDefinition,
        step: ValidateStep,
        ctx: WorkflowContext,
        raw_inputs: Any,
        collaborators: Collaborators,
    ) -> None:
        report = self.schema_registry.validate(definition.input_schema, raw_inputs)
        if not report.valid:
            self._audit_validation_failure(ctx, definition.input_schema, report.errors, "input", collaborators)
            raise ValidationFailure(
                f"Input for {definition.name} does not match schema {definition.input_schema}",
                report.errors,
                definition.input_schema,
            )

        ledger = collaborators.ledger

        if step.identity:
            credential = ctx.input(definition.credential_field)
            verified = await self._ledger_read(ledger.verify_identity(ctx.actor, credential), "verifyIdentity")
            if not verified:
                collaborators.compliance_log.audit_only(
                    AuditAction.IDENTITY_VERIFICATION,
                    FAILED,
                    {"executionId": ctx.execution_id, "actor": ctx.actor, "soulboundId": credential},
                )
                raise Unauthorized(
                    "Invalid soulbound identity",
                    {"actor": ctx.actor, "soulboundId": credential},
                )

        if step.min_reputation is not None:
            score = await self._ledger_read(ledger.get_reputation_score(ctx.actor), "getReputationScore")
            if score < step.min_reputation:
                raise Unauthorized(
                    f"Insufficient reputation: {score} < {step.min_reputation}",
                    {"actor": ctx.actor, "reputation": score, "required": step.min_reputation},
                )

        for requirement in step.requirements:
            value = ctx.input(requirement.input_field)
            entity = await self._find_one(
                collaborators, ctx, requirement.collection, {requirement.field: value}
            )
            if entity is None:
                raise NotFound(
                    f"{requirement.alias} {value} not found",
                    {"collection": requirement.collection, requirement.field: value},
                )
            if requirement.check is not None:
                requirement.check(entity, ctx)
            ctx.entities[requirement.alias] = entity

    async def _persist(
        self,
        step: PersistStep,
        ctx: WorkflowContext,
        collaborators: Collaborators,
    ) -> None:
        store = collaborators.store

        if step.mode == "update":
            entity_id = ctx.input(step.id_source)
            filter_ = {step.id_field: entity_id}
            existing = await self._find_one(collaborators, ctx, step.collection, filter_)
            if existing is None:
                raise NotFound(
                    f"{step.collection} record {entity_id} not found",
                    {"collection": step.collection, step.id_field: entity_id},
                )
            if step.guard is not None:
                step.guard(existing, ctx)

            ctx.entity_id = entity_id
            ctx.record = existing
            mutation = step.build(ctx)
            try:
                prospective = apply_mutation(existing, mutation)
            except PersistenceStoreError as e:
                raise PersistenceFailure(
                    f"Invalid mutation for {step.collection} record {entity_id}: {e}",
                    {"collection": step.collection, "recordId": entity_id},
                ) from e
            self._check_record(step, prospective, ctx, collaborators)
            operation = store.update(step.collection, filter_, mutation)
        else:
            supplied_id = ctx.input(step.id_source)
            entity_id = supplied_id or str(uuid.uuid4())
            ctx.entity_id = entity_id
            ctx.derived_ids = {
                name: template.format(id=entity_id)
                for name, template in step.derived_ids.items()
            }

            fields = {"id": entity_id, step.id_field: entity_id, **ctx.derived_ids}
            fields.update(step.build(ctx))
            created_at = utc_now_iso()
            self._check_record(step, {**fields, "createdAt": created_at}, ctx, collaborators)

            if supplied_id:
                # Supplied ids are honored verbatim: existing records are updated
                operation = store.update(
                    step.collection,
                    {step.id_field: entity_id},
                    {"$set": fields, "$setOnInsert": {"createdAt": created_at}},
                    upsert=True,
                )
            else:
                operation = store.insert(step.collection, {**fields, "createdAt": created_at})

        try:
            ctx.record = await operation
        except PersistenceStoreError as e:
            collaborators.compliance_log.audit_only(
                AuditAction.PERSISTENCE,
                FAILED,
                {
                    "executionId": ctx.execution_id,
                    "collection": step.collection,
                    "recordId": ctx.entity_id,
                    "error": str(e),
                },
            )
            raise PersistenceFailure(
                f"Failed to persist {step.collection} record: {e}",
                {"collection": step.collection, "recordId": ctx.entity_id},
            ) from e

        ctx.outputs[step.id_field] = ctx.entity_id
        ctx.outputs.update(ctx.derived_ids)
        logger.debug(f"[{ctx.execution_id}] Persisted {step.collection}/{ctx.entity_id}")

    async def _external_call(
        self,
        step: ExternalCallStep,
        ctx: WorkflowContext,
        collaborators: Collaborators,
    ) -> None:
        params = step.params(ctx)
        call = collaborators.ledger.submit(step.method, params)

        try:
            if self.ledger_timeout is not None:
                receipt = await asyncio.wait_for(call, timeout=self.ledger_timeout)
            else:
                receipt = await call
        except asyncio.TimeoutError:
            receipt = LedgerReceipt(
                success=False,
                error=f"{step.method} timed out after {self.ledger_timeout}s",
            )
        except Exception as e:
            receipt = LedgerReceipt(success=False, error=str(e))

        ctx.receipt = receipt
        compliance_log = collaborators.compliance_log

        if not receipt.success:
            compliance_log.audit_only(
                AuditAction.BLOCKCHAIN_SUBMISSION,
                FAILED,
                {
                    "executionId": ctx.execution_id,
                    "method": step.method,
                    "error": receipt.error,
                    "transactionId": receipt.transaction_id,
                    "persistedRecordId": ctx.entity_id,
                },
            )
            raise LedgerFailure(
                f"Ledger call {step.method} failed: {receipt.error}",
                receipt=receipt,
                persisted_record_id=ctx.entity_id,
            )

        compliance_log.audit_only(
            AuditAction.BLOCKCHAIN_SUBMISSION,
            SUCCESS,
            {
                "executionId": ctx.execution_id,
                "method": step.method,
                "transactionId": receipt.transaction_id,
            },
        )
        if receipt.transaction_id is not None:
            ctx.outputs["transactionId"] = receipt.transaction_id

    async def _aggregate_update(
        self,
        step: AggregateUpdateStep,
        ctx: WorkflowContext,
        collaborators: Collaborators,
    ) -> None:
        try:
            key = step.key(ctx)
            amount = step.amount(ctx)
            aggregate = await collaborators.store.increment(
                step.collection,
                {step.key_field: key},
                step.field,
                amount,
                upsert=True,
                baseline=0,
            )
        except Exception as e:
            collaborators.compliance_log.audit_only(
                AuditAction.AGGREGATE_UPDATE,
                FAILED,
                {
                    "executionId": ctx.execution_id,
                    "collection": step.collection,
                    "field": step.field,
                    "error": str(e),
                },
            )
            logger.warning(
                f"[{ctx.execution_id}] Aggregate update {step.collection}.{step.field} failed: {e}"
            )
            return

        if step.output:
            ctx.outputs[step.output] = amount
        if step.result_output:
            ctx.outputs[step.result_output] = aggregate.get(step.field)

    async def _audit(
        self,
        step: AuditStep,
        ctx: WorkflowContext,
        collaborators: Collaborators,
    ) -> None:
        snapshot = {name: ctx.outputs.get(name) for name in step.payload_fields}
        context = {
            "module": step.module.value,
            "transactionId": ctx.receipt.transaction_id if ctx.receipt else None,
        }
        if step.soulbound_field and ctx.input(step.soulbound_field):
            context["soulboundId"] = ctx.input(step.soulbound_field)

        try:
            await collaborators.compliance_log.record(
                step.event_type,
                ctx.actor,
                json.dumps(snapshot, default=str),
                context,
            )
        except LedgerFailure as e:
            if e.persisted_record_id is None and ctx.entity_id is not None:
                raise LedgerFailure(e.message, e.receipt, ctx.entity_id) from e
            raise

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _resolve_actor(self, definition: WorkflowDefinition, inputs: Any) -> str:
        if definition.actor_field and isinstance(inputs, dict):
            actor = inputs.get(definition.actor_field)
            if isinstance(actor, str) and actor:
                return actor
        return self.system_actor

    async def _find_one(
        self,
        collaborators: Collaborators,
        ctx: WorkflowContext,
        collection: str,
        filter_: dict[str, Any],
    ) -> Record | None:
        try:
            return await collaborators.store.find_one(collection, filter_)
        except PersistenceStoreError as e:
            collaborators.compliance_log.audit_only(
                AuditAction.PERSISTENCE,
                FAILED,
                {"executionId": ctx.execution_id, "collection": collection, "error": str(e)},
            )
            raise PersistenceFailure(
                f"Failed to read {collection}: {e}", {"collection": collection}
            ) from e

    async def _ledger_read(self, call: Any, method: str) -> Any:
        try:
            if self.ledger_timeout is not None:
                return await asyncio.wait_for(call, timeout=self.ledger_timeout)
            return await call
        except asyncio.TimeoutError:
            error = f"{method} timed out after {self.ledger_timeout}s"
            raise LedgerFailure(
                f"Ledger read {error}",
                receipt=LedgerReceipt(success=False, error=error),
            ) from None
        except Exception as e:
            raise LedgerFailure(
                f"Ledger read {method} failed: {e}",
                receipt=LedgerReceipt(success=False, error=str(e)),
            ) from e

    def _check_record(
        self,
        step: PersistStep,
        record: Record,
        ctx: WorkflowContext,
        collaborators: Collaborators,
    ) -> None:
        if step.record_schema is None:
            return
        report = self.schema_registry.validate(step.record_schema, record)
        if not report.valid:
            self._audit_validation_failure(ctx, step.record_schema, report.errors, "domain", collaborators)
            raise ValidationFailure(
                f"{step.collection} record does not match schema {step.record_schema}",
                report.errors,
                step.record_schema,
                tier="domain",
            )

    def _check_outputs(self, definition: WorkflowDefinition, ctx: WorkflowContext) -> None:
        if definition.output_schema is None:
            return
        report = self.schema_registry.validate(definition.output_schema, ctx.outputs)
        if not report.valid:
            logger.warning(
                f"[{ctx.execution_id}] Outputs of {definition.name} do not match "
                f"{definition.output_schema}: {[e.message for e in report.errors]}"
            )

    @staticmethod
    def _audit_validation_failure(ctx, schema, errors, tier, collaborators) -> None:
        collaborators.compliance_log.audit_only(
            AuditAction.EVENT_VALIDATION,
            FAILED,
            {
                "executionId": ctx.execution_id,
                "workflow": ctx.workflow,
                "schema": schema,
                "tier": tier,
                "errors": [error.to_dict() for error in errors],
            },
        )

    @staticmethod
    def _event_type(definition: WorkflowDefinition | None) -> str | None:
        if definition is None or definition.audit_step is None:
            return None
        return definition.audit_step.event_type.value

    @staticmethod
    def _duration_ms(started_at: datetime) -> int:
        return int((datetime.now(timezone.utc) - started_at).total_seconds() * 1000)
