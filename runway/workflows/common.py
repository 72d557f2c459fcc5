"""Shared pieces of the built-in workflows: notification and compensation."""

from __future__ import annotations

import logging
from typing import Any

from ..definition import CompensationFn, WorkflowContext
from ..models import RecordStatus, TransactionType, utcnow
from ..notify import Notification, NotificationKind, deliver

logger = logging.getLogger(__name__)


async def notify_owner(
    ctx: WorkflowContext,
    user_id: str,
    template: str,
    kind: NotificationKind,
    data: dict[str, Any],
) -> bool:
    """Email the record owner, if they have an address. Never raises on delivery."""
    profile = await ctx.services.accounts.get_profile(user_id)
    if profile is None or not profile.email:
        logger.info(f"No email address for user {user_id}, skipping {template}")
        return False
    return await deliver(
        ctx.services.notifier,
        Notification(
            to=profile.email,
            kind=kind,
            template=template,
            language=profile.preferred_language or "en",
            data={"user_name": profile.display_name or "User", **data},
        ),
    )


async def complete_record(ctx: WorkflowContext, **fields: Any):
    """Final write of a successful run."""
    return await ctx.update_record(
        status=RecordStatus.COMPLETED, progress=100, completed_at=utcnow(), **fields
    )


async def compensate(
    ctx: WorkflowContext, error: BaseException, notify_failure: bool = False
) -> None:
    """Refund (when the workflow refunds), mark the record failed, then notify.

    A record that already completed is left alone.
    """
    definition = ctx.definition
    services = ctx.services
    if definition.record_kind is None or ctx.record_id is None:
        logger.warning(f"{definition.name}: trigger names no record, nothing to compensate")
        return

    record = await services.records.get(definition.record_kind, ctx.record_id)
    if record is None:
        logger.warning(
            f"{definition.name}: {definition.record_kind.value} record {ctx.record_id} "
            "is gone, nothing to compensate"
        )
        return
    if record.status == RecordStatus.COMPLETED:
        logger.info(f"{definition.name}: record {record.id} already completed, skipping compensation")
        return

    message = str(error) or type(error).__name__

    if definition.refund_on_failure and definition.cost:
        if await services.accounts.get_profile(record.user_id) is None:
            logger.warning(f"{definition.name}: no profile for user {record.user_id}, refund skipped")
        else:
            tx = await services.accounts.credit(
                record.user_id,
                definition.cost,
                TransactionType.REFUND,
                metadata={
                    "reason": f"{definition.name}_failed",
                    "record_id": record.id,
                    "error": message,
                },
            )
            logger.info(
                f"Refunded {definition.cost} credits to user {record.user_id} "
                f"(balance {tx.balance_after})"
            )

    await services.records.update(
        definition.record_kind,
        record.id,
        status=RecordStatus.FAILED,
        error_message=message,
        metadata={"error_message": message},
    )

    if notify_failure:
        await notify_owner(
            ctx,
            record.user_id,
            "video_failed",
            NotificationKind.FAILURE,
            {"job_id": record.id, "error_message": message},
        )


def compensation(notify_failure: bool = False) -> CompensationFn:
    async def on_failure(ctx: WorkflowContext, error: BaseException) -> None:
        await compensate(ctx, error, notify_failure=notify_failure)

    return on_failure
