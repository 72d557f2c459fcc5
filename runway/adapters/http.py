"""Shared httpx plumbing for the provider clients."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx

from ..contracts import AdapterError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}


class HttpAdapter:
    """Base for REST clients. Pass ``client`` to share a connection pool or to test."""

    provider = "http"

    def __init__(
        self, timeout: float = 60.0, client: Optional[httpx.AsyncClient] = None
    ) -> None:
        self._timeout = timeout
        self._shared_client = client

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._shared_client is not None:
            yield self._shared_client
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise AdapterError(
                f"{self.provider} returned {status} for {method} {url}",
                retryable=status in RETRYABLE_STATUS_CODES,
            ) from e
        except httpx.HTTPError as e:
            raise AdapterError(f"{self.provider} request failed: {e}") from e

    async def _json(self, method: str, url: str, **kwargs: Any) -> Any:
        response = await self._request(method, url, **kwargs)
        return response.json()

    async def download(self, url: str) -> bytes:
        response = await self._request("GET", url, follow_redirects=True)
        return response.content
