"""Workflow registry: maps trigger event names to definitions."""

from __future__ import annotations

from typing import Dict, Iterator, Optional

from ..contracts import UnknownWorkflow
from ..definition import WorkflowDefinition
from .models import RegistrySnapshot, WorkflowDescriptor


def describe(definition: WorkflowDefinition) -> WorkflowDescriptor:
    return WorkflowDescriptor(
        name=definition.name,
        event=definition.event,
        description=definition.description,
        retries=definition.retries,
        cost=definition.cost,
        refund_on_failure=definition.refund_on_failure,
        record_kind=definition.record_kind.value if definition.record_kind else None,
        steps=definition.step_names,
    )


class WorkflowRegistry:
    """One definition per event name."""

    def __init__(self) -> None:
        self._by_event: Dict[str, WorkflowDefinition] = {}

    def register(self, definition: WorkflowDefinition, replace: bool = False) -> None:
        existing = self._by_event.get(definition.event)
        if existing is not None and existing is not definition and not replace:
            raise ValueError(
                f"Event '{definition.event}' is already handled by {existing.name}"
            )
        self._by_event[definition.event] = definition

    def get(self, event_name: str) -> Optional[WorkflowDefinition]:
        return self._by_event.get(event_name)

    def resolve(self, event_name: str) -> WorkflowDefinition:
        definition = self.get(event_name)
        if definition is None:
            raise UnknownWorkflow(event_name)
        return definition

    def __contains__(self, event_name: object) -> bool:
        return event_name in self._by_event

    def __iter__(self) -> Iterator[WorkflowDefinition]:
        return iter(self._by_event.values())

    def __len__(self) -> int:
        return len(self._by_event)

    def snapshot(self) -> RegistrySnapshot:
        return RegistrySnapshot(workflows=[describe(d) for d in self])


# Process-wide registry. The built-in workflows register themselves here when
# ``runway.workflows`` is imported.
REGISTRY = WorkflowRegistry()


def register_workflow(definition: WorkflowDefinition) -> WorkflowDefinition:
    """Add ``definition`` to ``REGISTRY`` and return it."""
    REGISTRY.register(definition)
    return definition


__all__ = [
    "WorkflowDescriptor",
    "RegistrySnapshot",
    "WorkflowRegistry",
    "REGISTRY",
    "register_workflow",
    "describe",
]
