"""Trigger dispatch and the retry action for failed records."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .constants import TRIGGER_TOPIC
from .contracts import RecordNotFound, RetryNotAllowed, WorkflowTrigger
from .models import EntityRecord, RecordKind, RecordStatus, TransactionType
from .registry import REGISTRY, WorkflowRegistry
from .stores import AccountStore, EntityStore
from .transports import BaseTransport

logger = logging.getLogger(__name__)


class JobDispatcher:
    """Creates entity records, charges credits and publishes workflow triggers."""

    def __init__(
        self,
        transport: BaseTransport,
        records: EntityStore,
        accounts: AccountStore,
        registry: WorkflowRegistry | None = None,
        topic: str = TRIGGER_TOPIC,
    ) -> None:
        self._transport = transport
        self._records = records
        self._accounts = accounts
        self._registry = registry if registry is not None else REGISTRY
        self._topic = topic

    async def submit(
        self,
        event_name: str,
        record: EntityRecord,
        payload: Optional[Dict[str, Any]] = None,
    ) -> WorkflowTrigger:
        """Start a workflow for a new record.

        The workflow's cost is debited first, so a user without enough credits
        never gets a record or a trigger. If the record cannot be stored or
        the trigger cannot be published, the debit is refunded. The record id
        is added to the payload under the workflow's record key.

        Returns:
            The published trigger.
        """
        definition = self._registry.resolve(event_name)
        if definition.record_kind is None:
            raise ValueError(f"Workflow {definition.name} does not drive an entity record")

        trigger_payload = {**(payload or {}), definition.record_key: record.id}
        record = record.model_copy(
            update={
                "status": RecordStatus.PENDING,
                "progress": 0,
                "trigger_event": event_name,
                "trigger_payload": trigger_payload,
            }
        )

        if definition.cost:
            await self._accounts.debit(
                record.user_id,
                definition.cost,
                metadata={"reason": definition.name, "record_id": record.id},
            )
        trigger = WorkflowTrigger(event_name=event_name, payload=trigger_payload)
        try:
            await self._records.insert(definition.record_kind, record)
        except Exception:
            await self._refund(record.user_id, definition.cost, definition.name, record.id)
            raise
        try:
            await self._transport.publish(self._topic, trigger)
        except Exception as e:
            await self._refund(record.user_id, definition.cost, definition.name, record.id)
            await self._records.update(
                definition.record_kind,
                record.id,
                status=RecordStatus.FAILED,
                error_message=f"Could not queue job: {e}",
            )
            raise

        logger.info(
            f"Dispatched {event_name} for {definition.record_kind.value} {record.id} "
            f"(trigger_id={trigger.trigger_id})"
        )
        return trigger

    async def retry(
        self, kind: RecordKind, record_id: str, user_id: Optional[str] = None
    ) -> WorkflowTrigger:
        """Reset a failed record and re-emit its original trigger.

        Workflows that refunded on failure charge their cost again.
        """
        kind = RecordKind(kind)
        record = await self._records.get(kind, record_id)
        if record is None or (user_id is not None and record.user_id != user_id):
            raise RecordNotFound(kind.value, record_id)
        if record.status != RecordStatus.FAILED:
            raise RetryNotAllowed(
                f"Only failed records can be retried ({kind.value} {record_id} is {record.status.value})"
            )
        if not record.trigger_event:
            raise RetryNotAllowed(f"{kind.value} {record_id} has no recorded trigger")

        definition = self._registry.resolve(record.trigger_event)
        charge = definition.cost if definition.refund_on_failure else 0
        if charge:
            await self._accounts.debit(
                record.user_id,
                charge,
                metadata={"reason": f"{definition.name}_retry", "record_id": record.id},
            )

        try:
            await self._records.update(
                kind,
                record_id,
                status=RecordStatus.PENDING,
                progress=0,
                error_message=None,
                current_step=None,
            )
        except Exception:
            await self._refund(record.user_id, charge, f"{definition.name}_retry", record.id)
            raise

        payload = dict(record.trigger_payload) or {definition.record_key: record.id}
        trigger = WorkflowTrigger(event_name=record.trigger_event, payload=payload)
        try:
            await self._transport.publish(self._topic, trigger)
        except Exception:
            await self._refund(record.user_id, charge, f"{definition.name}_retry", record.id)
            await self._records.update(
                kind, record_id, status=RecordStatus.FAILED, error_message=record.error_message
            )
            raise
        logger.info(f"Retrying {kind.value} {record_id} with trigger_id={trigger.trigger_id}")
        return trigger

    async def _refund(self, user_id: str, amount: int, reason: str, record_id: str) -> None:
        """Give back a debit whose job never made it onto the queue."""
        if not amount:
            return
        await self._accounts.credit(
            user_id,
            amount,
            TransactionType.REFUND,
            metadata={"reason": f"{reason}_not_queued", "record_id": record_id},
        )
        logger.warning(f"Refunded {amount} credits to user {user_id}: {record_id} was not queued")
