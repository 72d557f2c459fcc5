"""Notification contract and best-effort delivery."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class Notification(BaseModel):
    to: str
    kind: NotificationKind
    template: str
    language: str = "en"
    data: dict[str, Any] = Field(default_factory=dict)


class Notifier(Protocol):
    async def send(self, notification: Notification) -> None:
        """Deliver ``notification``. May raise on transport errors."""


async def deliver(notifier: Notifier, notification: Notification) -> bool:
    """Send without letting a delivery problem escape. Returns ``True`` on success."""
    try:
        await notifier.send(notification)
    except Exception as e:
        logger.error(
            f"Failed to send {notification.template} notification to {notification.to}: {e}"
        )
        return False
    return True
