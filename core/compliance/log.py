"""
Compliance Log.

Append-only trails written synchronously by every workflow:
- compliance events (validated, then forwarded to the ledger)
- audit log entries (local only, never forwarded)

record() never touches the ledger with an invalid event: the rejection is
audited as event_validation:failed and InvalidComplianceEvent is raised.
"""
from typing import Any, Dict, List, Mapping, Optional, Union
import asyncio
import copy
import logging
import re

from core.domain.enums import AuditAction, ComplianceEventType, ComplianceModule
from core.domain.errors import InvalidComplianceEvent, LedgerFailure
from core.domain.events import (
    DEFAULT_SOULBOUND_ID,
    AuditLogEntry,
    ComplianceContext,
    ComplianceEvent,
)
from core.domain.ledger import LedgerAdapter, LedgerReceipt
from core.validation import SchemaRegistry, SchemaRegistryError


logger = logging.getLogger(__name__)


ETHEREUM_ADDRESS_PATTERN = re.compile(r"^(0x)?[0-9a-fA-F]{40}$")

COMPLIANCE_EVENT_SCHEMA = "compliance-event"
AUDIT_LOG_ENTRY_SCHEMA = "audit-log-entry"

_EVENT_TYPES = frozenset(e.value for e in ComplianceEventType)
_MODULES = frozenset(m.value for m in ComplianceModule)


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


class ComplianceLog:
    """
    Compliance event and audit log writer.

    One instance is shared by all concurrent invocations. Appends happen
    between suspension points, so the in-memory lists need no lock.
    """

    def __init__(
        self,
        ledger: LedgerAdapter,
        schema_registry: Optional[SchemaRegistry] = None,
        ledger_timeout: Optional[float] = None,
    ):
        """
        Initialize compliance log.

        Args:
            ledger: Ledger adapter receiving accepted events
            schema_registry: Registry holding the compliance-event and
                audit-log-entry schemas (structural checks skipped when None)
            ledger_timeout: Seconds before forwarding an event counts as failed
        """
        self.ledger = ledger
        self.schema_registry = schema_registry
        self.ledger_timeout = ledger_timeout
        self._events: List[ComplianceEvent] = []
        self._audit_entries: List[AuditLogEntry] = []

    # =========================================================================
    # COMPLIANCE EVENTS
    # =========================================================================

    async def record(
        self,
        event_type: Union[str, ComplianceEventType],
        user_id: str,
        payload: Union[str, Dict[str, Any]],
        context: Mapping[str, Any],
    ) -> ComplianceEvent:
        """
        Validate a compliance event and forward it to the ledger.

        Args:
            event_type: One of ComplianceEventType
            user_id: Ethereum address of the acting user
            payload: JSON string or object describing the action
            context: {"module", "soulboundId"?, "transactionId"?}

        Returns:
            The recorded ComplianceEvent

        Raises:
            InvalidComplianceEvent: If the event violates its invariants
            LedgerFailure: If the ledger does not accept the event
        """
        event_type = _enum_value(event_type)
        module = _enum_value(context.get("module")) if context else None

        problems = self._check_invariants(event_type, user_id, module)

        event: Optional[ComplianceEvent] = None
        if not problems:
            if isinstance(payload, dict):
                payload = {**copy.deepcopy(payload)}
                payload.setdefault("metadata", {})
            event = ComplianceEvent(
                event_type=event_type,
                user_id=user_id,
                payload=payload,
                context=ComplianceContext(
                    module=module,
                    soulbound_id=context.get("soulboundId") or DEFAULT_SOULBOUND_ID,
                    transaction_id=context.get("transactionId"),
                ),
            )
            problems = self._check_schema(COMPLIANCE_EVENT_SCHEMA, event.to_dict())

        if problems or event is None:
            self.audit_only(
                AuditAction.EVENT_VALIDATION,
                "failed",
                {
                    "eventType": event_type,
                    "userId": user_id,
                    "module": module,
                    "errors": problems,
                },
            )
            logger.warning(f"Rejected compliance event {event_type} for {user_id}: {problems}")
            raise InvalidComplianceEvent(
                f"Invalid compliance event: {'; '.join(problems)}",
                {"errors": problems},
            )

        self._events.append(event)

        event_data = event.to_dict()
        try:
            call = self.ledger.log_event(event.id, event_data)
            if self.ledger_timeout is not None:
                receipt = await asyncio.wait_for(call, timeout=self.ledger_timeout)
            else:
                receipt = await call
        except asyncio.TimeoutError:
            receipt = LedgerReceipt(
                success=False,
                error=f"logEvent timed out after {self.ledger_timeout}s",
            )
        except Exception as e:
            receipt = LedgerReceipt(success=False, error=str(e))

        if not receipt.success:
            self.audit_only(
                AuditAction.BLOCKCHAIN_SUBMISSION,
                "failed",
                {
                    "eventId": event.id,
                    "eventType": event_type,
                    "error": receipt.error,
                    "transactionId": receipt.transaction_id,
                },
            )
            logger.error(f"Ledger rejected compliance event {event.id}: {receipt.error}")
            raise LedgerFailure(
                f"Failed to log compliance event on ledger: {receipt.error}",
                receipt=receipt,
            )

        self.audit_only(
            AuditAction.BLOCKCHAIN_SUBMISSION,
            "success",
            {
                "eventId": event.id,
                "eventType": event_type,
                "transactionId": receipt.transaction_id,
            },
        )
        logger.info(f"Compliance event {event_type} recorded ({event.id})")
        return event

    # =========================================================================
    # AUDIT LOG
    # =========================================================================

    def audit_only(
        self,
        action: Union[str, AuditAction],
        status: str,
        details: Optional[Mapping[str, Any]] = None,
    ) -> AuditLogEntry:
        """
        Append an audit log entry (never forwarded to the ledger).

        Args:
            action: AuditAction or its value
            status: "success" or "failed"
            details: Extra fields stored next to the status

        Returns:
            The appended AuditLogEntry
        """
        entry = AuditLogEntry(
            action=_enum_value(action),
            details={**copy.deepcopy(dict(details or {})), "status": _enum_value(status)},
        )

        problems = self._check_schema(AUDIT_LOG_ENTRY_SCHEMA, entry.to_dict())
        if problems:
            logger.warning(f"Audit entry {entry.kind} does not match its schema: {problems}")

        self._audit_entries.append(entry)
        return entry

    # =========================================================================
    # READ SIDE
    # =========================================================================

    @property
    def events(self) -> List[ComplianceEvent]:
        return list(self._events)

    @property
    def audit_entries(self) -> List[AuditLogEntry]:
        return list(self._audit_entries)

    def find_events(
        self,
        event_type: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> List[ComplianceEvent]:
        event_type = _enum_value(event_type)
        return [
            event
            for event in self._events
            if (event_type is None or event.event_type == event_type)
            and (user_id is None or event.user_id.lower() == user_id.lower())
        ]

    def find_audit(
        self,
        action: Optional[str] = None,
        status: Optional[str] = None,
        execution_id: Optional[str] = None,
    ) -> List[AuditLogEntry]:
        action = _enum_value(action)
        return [
            entry
            for entry in self._audit_entries
            if (action is None or entry.action == action)
            and (status is None or entry.status == status)
            and (execution_id is None or entry.details.get("executionId") == execution_id)
        ]

    # =========================================================================
    # INTERNALS
    # =========================================================================

    @staticmethod
    def _check_invariants(event_type: Any, user_id: Any, module: Any) -> List[str]:
        problems = []
        if event_type not in _EVENT_TYPES:
            problems.append(f"unknown event type '{event_type}'")
        if not isinstance(user_id, str) or not ETHEREUM_ADDRESS_PATTERN.match(user_id):
            problems.append(f"userId '{user_id}' is not an Ethereum address")
        if module not in _MODULES:
            problems.append(f"unknown module '{module}'")
        return problems

    def _check_schema(self, schema_name: str, value: Dict[str, Any]) -> List[str]:
        if self.schema_registry is None:
            return []
        try:
            report = self.schema_registry.validate(schema_name, value)
        except SchemaRegistryError as e:
            return [str(e)]
        return [f"{error.path or '/'}: {error.message}" for error in report.errors]
