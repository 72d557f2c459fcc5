"""Object storage for intermediate artifacts (training archives, reference frames)."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

import httpx

from .http import HttpAdapter

logger = logging.getLogger(__name__)


class SupabaseStorage(HttpAdapter):
    """Supabase Storage REST API. Uploads upsert and return the public URL."""

    provider = "supabase-storage"

    def __init__(
        self,
        url: str,
        service_role_key: str,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(timeout=timeout, client=client)
        self._base = url.rstrip("/")
        self._key = service_role_key

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self._base}/storage/v1/object/public/{bucket}/{path.lstrip('/')}"

    async def upload(
        self, bucket: str, path: str, data: bytes, content_type: str
    ) -> str:
        await self._request(
            "POST",
            f"{self._base}/storage/v1/object/{bucket}/{path.lstrip('/')}",
            content=data,
            headers={
                "Authorization": f"Bearer {self._key}",
                "apikey": self._key,
                "Content-Type": content_type,
                "x-upsert": "true",
            },
        )
        logger.info(f"Uploaded {len(data)} bytes to {bucket}/{path}")
        return self.public_url(bucket, path)


class InMemoryStorage:
    """Keeps uploads in a dict; URLs use the ``memory://`` scheme."""

    def __init__(self) -> None:
        self.objects: Dict[Tuple[str, str], Tuple[bytes, str]] = {}

    async def upload(
        self, bucket: str, path: str, data: bytes, content_type: str
    ) -> str:
        self.objects[(bucket, path)] = (data, content_type)
        return f"memory://{bucket}/{path}"
