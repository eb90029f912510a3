"""Workflow definitions - steps, WorkflowDefinition, WorkflowRegistry."""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Literal

from core.domain.enums import ComplianceEventType, ComplianceModule
from core.domain.errors import UnknownWorkflow
from core.domain.repositories import Record

from .models import WorkflowContext


class StepKind(str, Enum):
    """Kinds of workflow steps, in canonical execution order."""

    VALIDATE = "validate"
    PERSIST = "persist"
    EXTERNAL_CALL = "external-call"
    AGGREGATE_UPDATE = "aggregate-update"
    AUDIT = "audit"


STEP_ORDER = list(StepKind)

# Steps a workflow may declare at most once
SINGLE_STEPS = frozenset({StepKind.VALIDATE, StepKind.PERSIST, StepKind.EXTERNAL_CALL, StepKind.AUDIT})

# Type aliases for workflow callables
Builder = Callable[[WorkflowContext], dict[str, Any]]
Guard = Callable[[Record, WorkflowContext], None]


@dataclass(frozen=True)
class Requirement:
    """An entity that must exist before any effect runs.

    The entity is looked up by `field == inputs[input_field]` and exposed
    to later steps as `ctx.entities[alias]`. `check` may raise
    Unauthorized or InvalidState.
    """

    collection: str
    field: str
    input_field: str
    alias: str
    check: Guard | None = None


@dataclass(frozen=True)
class ValidateStep:
    """Input schema check plus identity, reputation and entity preconditions."""

    kind: ClassVar[StepKind] = StepKind.VALIDATE

    identity: bool = False
    min_reputation: float | None = None
    requirements: tuple[Requirement, ...] = ()


@dataclass(frozen=True)
class PersistStep:
    """Write of the primary domain record.

    insert: `build` returns the record fields; the id comes from
    `inputs[id_input]` when supplied (upsert) or a fresh UUID.
    update: the record `id_field == inputs[id_input]` must exist, `guard`
    runs against it, then `build` returns the mutation document.
    """

    kind: ClassVar[StepKind] = StepKind.PERSIST

    collection: str
    id_field: str
    build: Builder
    mode: Literal["insert", "update"] = "insert"
    id_input: str | None = None
    derived_ids: Mapping[str, str] = field(default_factory=dict)
    record_schema: str | None = None
    guard: Guard | None = None

    @property
    def id_source(self) -> str:
        return self.id_input or self.id_field


@dataclass(frozen=True)
class ExternalCallStep:
    """Ledger submission; `params` builds the ordered list, primary id first."""

    kind: ClassVar[StepKind] = StepKind.EXTERNAL_CALL

    method: str
    params: Callable[[WorkflowContext], list[Any]]


@dataclass(frozen=True)
class AggregateUpdateStep:
    """Increment-or-create-at-baseline of a secondary aggregate."""

    kind: ClassVar[StepKind] = StepKind.AGGREGATE_UPDATE

    collection: str
    key_field: str
    key: Callable[[WorkflowContext], Any]
    field: str
    amount: Callable[[WorkflowContext], float]
    # Output names for the increment and for the resulting value
    output: str | None = None
    result_output: str | None = None


@dataclass(frozen=True)
class AuditStep:
    """The compliance event written on success."""

    kind: ClassVar[StepKind] = StepKind.AUDIT

    event_type: ComplianceEventType
    module: ComplianceModule
    payload_fields: tuple[str, ...] = ()
    soulbound_field: str | None = None


Step = ValidateStep | PersistStep | ExternalCallStep | AggregateUpdateStep | AuditStep


class WorkflowDefinitionError(ValueError):
    """Raised when a workflow definition is malformed."""


@dataclass(frozen=True)
class WorkflowDefinition:
    """Definition of a workflow. Immutable once built."""

    name: str
    input_schema: str
    steps: tuple[Step, ...]
    output_schema: str | None = None
    actor_field: str | None = None
    credential_field: str | None = None
    outputs: Callable[[WorkflowContext], dict[str, Any]] | None = None
    description: str = ""

    def __post_init__(self) -> None:
        steps = tuple(self.steps)
        object.__setattr__(self, "steps", steps)

        if not steps or steps[0].kind is not StepKind.VALIDATE:
            raise WorkflowDefinitionError(f"{self.name}: first step must be a validate step")

        positions = [STEP_ORDER.index(step.kind) for step in steps]
        if positions != sorted(positions):
            raise WorkflowDefinitionError(
                f"{self.name}: steps must follow "
                f"{' -> '.join(kind.value for kind in STEP_ORDER)}"
            )

        for kind in SINGLE_STEPS:
            if sum(1 for step in steps if step.kind is kind) > 1:
                raise WorkflowDefinitionError(f"{self.name}: more than one {kind.value} step")

        if self.mutating and self.audit_step is None:
            raise WorkflowDefinitionError(f"{self.name}: mutating workflows need an audit step")

        validate = self.validate_step
        if validate.identity and not (self.actor_field and self.credential_field):
            raise WorkflowDefinitionError(
                f"{self.name}: identity check needs actor_field and credential_field"
            )

    # =========================================================================
    # STEP ACCESS
    # =========================================================================

    def _first(self, kind: StepKind) -> Any:
        return next((step for step in self.steps if step.kind is kind), None)

    @property
    def validate_step(self) -> ValidateStep:
        return self._first(StepKind.VALIDATE)

    @property
    def persist_step(self) -> PersistStep | None:
        return self._first(StepKind.PERSIST)

    @property
    def external_call_step(self) -> ExternalCallStep | None:
        return self._first(StepKind.EXTERNAL_CALL)

    @property
    def aggregate_steps(self) -> list[AggregateUpdateStep]:
        return [step for step in self.steps if step.kind is StepKind.AGGREGATE_UPDATE]

    @property
    def audit_step(self) -> AuditStep | None:
        return self._first(StepKind.AUDIT)

    @property
    def mutating(self) -> bool:
        return any(
            step.kind in (StepKind.PERSIST, StepKind.EXTERNAL_CALL, StepKind.AGGREGATE_UPDATE)
            for step in self.steps
        )

    def describe(self) -> dict[str, Any]:
        """Summary used by the workflow listing endpoint."""
        audit = self.audit_step
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
            "outputSchema": self.output_schema,
            "steps": [step.kind.value for step in self.steps],
            "mutating": self.mutating,
            "eventType": audit.event_type.value if audit else None,
        }


class WorkflowRegistry:
    """Lookup table of workflow definitions, built once at startup."""

    def __init__(self, definitions: Iterable[WorkflowDefinition] = ()) -> None:
        self._definitions: dict[str, WorkflowDefinition] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: WorkflowDefinition) -> None:
        if definition.name in self._definitions:
            raise WorkflowDefinitionError(f"Workflow '{definition.name}' is already registered")
        self._definitions[definition.name] = definition

    def get(self, name: str) -> WorkflowDefinition:
        """Resolve a workflow by name.

        Raises:
            UnknownWorkflow: If no workflow has that name
        """
        try:
            return self._definitions[name]
        except KeyError:
            raise UnknownWorkflow(
                f"Unknown workflow: {name}", {"workflow": name}
            ) from None

    def names(self) -> list[str]:
        return sorted(self._definitions)

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __iter__(self):
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)
