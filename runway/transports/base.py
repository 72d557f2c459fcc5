"""Broker-neutral contract the worker loop consumes triggers through."""

from __future__ import annotations

import abc
from typing import AsyncIterator, Generic, Optional, Tuple, TypeVar

from ..contracts import WorkflowTrigger

RawMessageT = TypeVar("RawMessageT")


class BaseTransport(Generic[RawMessageT], metaclass=abc.ABCMeta):
    """Delivers ``WorkflowTrigger`` envelopes at least once.

    The engine acks a message only after its execution reached a final
    state, so a worker that dies mid-run leaves the trigger to be redelivered.
    Executions are keyed by ``trigger_id``, which makes redelivery safe.
    """

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    @abc.abstractmethod
    async def publish(self, topic: str, trigger: WorkflowTrigger) -> None:
        """Queue ``trigger`` on ``topic``. Raises if the broker did not take it."""
        raise NotImplementedError

    @abc.abstractmethod
    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[RawMessageT, WorkflowTrigger]]:
        """Yield ``(raw_message, trigger)`` pairs until ``lifespan`` seconds pass.

        ``raw_message`` is the broker handle later passed to ``ack``/``nack``.
        Messages that do not parse as a trigger are dropped or dead-lettered
        here and never reach the engine. ``lifespan=None`` runs forever.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def ack(self, raw_message: RawMessageT) -> None:
        """Mark the trigger as handled; it must not be delivered again."""
        raise NotImplementedError

    async def nack(self, raw_message: RawMessageT, requeue: bool = True) -> None:
        """Hand a trigger back.

        ``requeue=True`` is used after an engine failure so the execution can
        resume; ``requeue=False`` dead-letters triggers no workflow handles.
        Brokers without redelivery treat both as an ack.
        """
        await self.ack(raw_message)
