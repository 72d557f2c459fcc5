"""Notification dispatch for terminal workflow outcomes."""

from __future__ import annotations

from typing import Optional

from ..config import RunwayConfig, load_config
from .base import Notification, NotificationKind, Notifier, deliver
from .inmemory import InMemoryNotifier, LoggingNotifier
from .resend import ResendNotifier
from .templates import render


def get_notifier(config: Optional[RunwayConfig] = None) -> Notifier:
    config = config or load_config()
    if config.email.resend_api_key:
        return ResendNotifier(
            config.email.resend_api_key, config.email.sender, config.email.app_url
        )
    return LoggingNotifier()


__all__ = [
    "Notification",
    "NotificationKind",
    "Notifier",
    "deliver",
    "InMemoryNotifier",
    "LoggingNotifier",
    "ResendNotifier",
    "render",
    "get_notifier",
]
