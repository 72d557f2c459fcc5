from __future__ import annotations

import logging

from .base import Notification

logger = logging.getLogger(__name__)


class InMemoryNotifier:
    """Collects notifications instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[Notification] = []

    async def send(self, notification: Notification) -> None:
        self.sent.append(notification)


class LoggingNotifier:
    """Used when no email provider is configured."""

    async def send(self, notification: Notification) -> None:
        logger.warning(
            f"Email not configured: dropping {notification.template} notification "
            f"for {notification.to}"
        )
