from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..adapters.http import HttpAdapter
from .base import Notification
from .templates import render

logger = logging.getLogger(__name__)

RESEND_API = "https://api.resend.com/emails"


class ResendNotifier(HttpAdapter):
    """Sends rendered email templates through the Resend API."""

    provider = "resend"

    def __init__(
        self,
        api_key: str,
        sender: str,
        app_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(timeout=timeout, client=client)
        self._api_key = api_key
        self._sender = sender
        self._app_url = app_url

    async def send(self, notification: Notification) -> None:
        subject, html = render(
            notification.template, notification.language, notification.data, self._app_url
        )
        await self._request(
            "POST",
            RESEND_API,
            json={
                "from": self._sender,
                "to": notification.to,
                "subject": subject,
                "html": html,
            },
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        logger.info(f"Sent {notification.template} email to {notification.to}")
