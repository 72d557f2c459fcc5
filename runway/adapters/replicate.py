"""Replicate predictions API client (SDXL images, Stable Video Diffusion)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from ..contracts import AdapterError
from .base import ImageRequest, VideoRequest
from .http import HttpAdapter

logger = logging.getLogger(__name__)

REPLICATE_API = "https://api.replicate.com/v1/predictions"

SDXL_VERSION = "39ed52f2a78e934b3ba6e2a89f5b1c712de7dfea535525255b1aa35c5565e08b"
SVD_VERSION = "3f0457e4619daac51203dedb472816fd4af51f3149fa7a9e0b5ffcf1b8172438"

_TERMINAL = {"succeeded", "failed", "canceled"}


class ReplicateClient(HttpAdapter):
    provider = "replicate"

    def __init__(
        self,
        api_token: Optional[str],
        timeout: float = 60.0,
        poll_interval: float = 2.0,
        max_poll_seconds: float = 900.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(timeout=timeout, client=client)
        self._api_token = api_token
        self._poll_interval = poll_interval
        self._max_poll_seconds = max_poll_seconds

    def _headers(self) -> dict:
        if not self._api_token:
            raise AdapterError("REPLICATE_API_TOKEN is not configured", retryable=False)
        return {
            "Authorization": f"Bearer {self._api_token}",
            "Content-Type": "application/json",
            "Prefer": "wait",
        }

    async def predict(self, version: str, inputs: dict[str, Any]) -> Any:
        """Create a prediction and wait for its output."""
        headers = self._headers()
        prediction = await self._json(
            "POST", REPLICATE_API, json={"version": version, "input": inputs}, headers=headers
        )

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._max_poll_seconds
        while prediction.get("status") not in _TERMINAL:
            if loop.time() >= deadline:
                raise AdapterError(
                    f"Replicate prediction {prediction.get('id')} timed out"
                )
            await asyncio.sleep(self._poll_interval)
            poll_url = (prediction.get("urls") or {}).get("get") or (
                f"{REPLICATE_API}/{prediction['id']}"
            )
            prediction = await self._json("GET", poll_url, headers=headers)

        if prediction["status"] != "succeeded":
            raise AdapterError(
                f"Replicate prediction {prediction.get('id')} {prediction['status']}: "
                f"{prediction.get('error')}"
            )
        return prediction.get("output")

    async def generate_images(self, request: ImageRequest) -> list[str]:
        if request.loras:
            raise AdapterError(
                "Replicate SDXL does not accept LoRA weights", retryable=False
            )
        output = await self.predict(
            SDXL_VERSION,
            {
                "prompt": request.prompt,
                "negative_prompt": request.negative_prompt or "",
                "width": request.width,
                "height": request.height,
                "num_outputs": request.count,
                "num_inference_steps": request.num_inference_steps or 50,
                "guidance_scale": request.guidance_scale or 7.5,
            },
        )
        urls = output if isinstance(output, list) else [output]
        urls = [url for url in urls if url]
        if not urls:
            raise AdapterError("Replicate SDXL returned no images")
        return urls

    async def synthesize(self, request: VideoRequest) -> str:
        output = await self.predict(
            SVD_VERSION,
            {
                "input_image": request.image_url,
                "fps": 6,
                "motion_bucket_id": 127,
                "cond_aug": 0.02,
                "decoding_t": 14,
                "video_length": "14_frames_with_svd",
            },
        )
        url = output[0] if isinstance(output, list) and output else output
        if not url:
            raise AdapterError("Replicate video model returned no output")
        return url
