"""In-memory transport for testing and single-process workers."""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from typing import AsyncIterator, Deque, Dict, Optional, Tuple

from ..contracts import WorkflowTrigger
from .base import BaseTransport


class InMemoryTransport(BaseTransport[Tuple[str, WorkflowTrigger]]):
    """Simple in-process queue for unit tests."""

    def __init__(self) -> None:
        self._queues: Dict[str, Deque[Tuple[str, WorkflowTrigger]]] = defaultdict(deque)
        self._lock = asyncio.Lock()
        self.dead_letters: list[WorkflowTrigger] = []

    async def publish(self, topic: str, trigger: WorkflowTrigger) -> None:
        """Publish trigger to in-memory queue."""
        raw = (topic, trigger)
        async with self._lock:
            self._queues[topic].append(raw)

    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[Tuple[str, WorkflowTrigger], WorkflowTrigger]]:
        """Subscribe to triggers from topic.

        Args:
            topic: The topic to subscribe to
            lifespan: Maximum time in seconds to keep connection open. If None, runs indefinitely.
        """
        loop = asyncio.get_running_loop()
        start_time = loop.time() if lifespan else None

        while True:
            if lifespan and start_time is not None:
                if loop.time() - start_time >= lifespan:
                    break

            raw_message = None
            async with self._lock:
                if self._queues[topic]:
                    raw_message = self._queues[topic].popleft()
            if raw_message is not None:
                yield raw_message, raw_message[1]
                continue

            await asyncio.sleep(0.05)

    async def ack(self, raw_message: Tuple[str, WorkflowTrigger]) -> None:
        """No-op acknowledgment for in-memory transport."""
        pass

    async def nack(
        self, raw_message: Tuple[str, WorkflowTrigger], requeue: bool = True
    ) -> None:
        """Put the message back at the head of its queue, or park it in ``dead_letters``."""
        topic, trigger = raw_message
        if not requeue:
            self.dead_letters.append(trigger)
            return
        async with self._lock:
            self._queues[topic].appendleft(raw_message)

    def pending(self, topic: str) -> list[WorkflowTrigger]:
        """Triggers queued on ``topic`` that nobody consumed yet."""
        return [trigger for _, trigger in self._queues[topic]]
