"""Workflow definitions and the context passed to their steps."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Type

from pydantic import BaseModel, ValidationError

from .contracts import InvalidPayload, RecordNotFound, WorkflowTrigger
from .models import EntityRecord, RecordKind

if TYPE_CHECKING:
    from .services import Services
    from .steps import StepExecutor

StepFn = Callable[["WorkflowContext"], Awaitable[Any]]
CompensationFn = Callable[["WorkflowContext", BaseException], Awaitable[None]]


@dataclass(frozen=True)
class Step:
    """A named unit of work.

    ``resumable=False`` makes the step run again on every attempt even when
    durable resume is enabled, e.g. for outputs a later gate may reject.
    """

    name: str
    fn: StepFn
    resumable: bool = True


@dataclass(frozen=True)
class WorkflowDefinition:
    """Static description of a workflow.

    Args:
        name: Stable identifier, used in execution history.
        event: Trigger event name that starts the workflow.
        steps: Steps in execution order. Names must be unique.
        retries: Maximum number of attempts.
        cost: Credits debited when the workflow is triggered.
        refund_on_failure: Whether compensation credits ``cost`` back.
        on_failure: Compensation coroutine run once after the last failed attempt.
        payload_model: Pydantic model the trigger payload is validated against.
        record_kind: Entity table the workflow drives.
        record_key: Payload key holding the entity record id.
    """

    name: str
    event: str
    steps: tuple[Step, ...]
    retries: int = 1
    cost: int = 0
    refund_on_failure: bool = False
    on_failure: Optional[CompensationFn] = None
    payload_model: Optional[Type[BaseModel]] = None
    record_kind: Optional[RecordKind] = None
    record_key: str = "id"
    description: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.steps:
            raise ValueError(f"Workflow {self.name} has no steps")
        if self.retries < 1:
            raise ValueError(f"Workflow {self.name} needs at least one attempt")
        names = [step.name for step in self.steps]
        duplicates = {name for name in names if names.count(name) > 1}
        if duplicates:
            raise ValueError(
                f"Workflow {self.name} has duplicate step names: {sorted(duplicates)}"
            )
        object.__setattr__(self, "steps", tuple(self.steps))

    @property
    def step_names(self) -> list[str]:
        return [step.name for step in self.steps]

    def parse_payload(self, payload: dict[str, Any]) -> Any:
        if self.payload_model is None:
            return payload
        try:
            return self.payload_model.model_validate(payload)
        except ValidationError as e:
            raise InvalidPayload(f"Invalid payload for {self.event}: {e}") from e


class WorkflowContext:
    """Per-attempt view handed to step functions and compensation."""

    def __init__(
        self,
        definition: WorkflowDefinition,
        trigger: WorkflowTrigger,
        services: "Services",
        executor: "StepExecutor",
        attempt: int = 1,
        payload: Any = None,
    ) -> None:
        self.definition = definition
        self.trigger = trigger
        self.services = services
        self.executor = executor
        self.attempt = attempt
        self.payload = payload

    @property
    def execution_id(self) -> str:
        return self.trigger.trigger_id

    @property
    def record_id(self) -> Optional[str]:
        value = self.trigger.payload.get(self.definition.record_key)
        return str(value) if value is not None else None

    def output(self, step_name: str) -> Any:
        """Output of an earlier step in this attempt."""
        return self.executor.output(step_name)

    async def step(self, name: str, fn: Callable[[], Awaitable[Any]]) -> Any:
        """Run a named sub-step through the memoizing executor."""
        return await self.executor.run(name, fn)

    def _require_target(self) -> tuple[RecordKind, str]:
        if self.definition.record_kind is None or self.record_id is None:
            raise InvalidPayload(
                f"Trigger for {self.definition.event} does not name a "
                f"{self.definition.record_key}"
            )
        return self.definition.record_kind, self.record_id

    async def record(self) -> EntityRecord:
        kind, record_id = self._require_target()
        record = await self.services.records.get(kind, record_id)
        if record is None:
            raise RecordNotFound(kind.value, record_id)
        return record

    async def update_record(self, **fields: Any) -> EntityRecord:
        kind, record_id = self._require_target()
        return await self.services.records.update(kind, record_id, **fields)

    async def progress(self, value: int, label: Optional[str] = None, **fields: Any) -> EntityRecord:
        """Write ``progress`` (and optionally ``current_step``) with any extra fields."""
        if label is not None:
            fields["current_step"] = label
        return await self.update_record(progress=value, **fields)
