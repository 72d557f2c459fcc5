"""fal.ai queue API client: Flux images, LoRA training, Kling video, DWPose, BiRefNet."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from ..contracts import AdapterError
from .base import ImageRequest, TrainedWeights, TrainingRequest, VideoRequest
from .http import HttpAdapter

logger = logging.getLogger(__name__)

FAL_QUEUE_BASE = "https://queue.fal.run"
FAL_RUN_BASE = "https://fal.run"

FAL_MODELS = {
    "train_lora": "fal-ai/flux-lora-fast-training",
    "flux_pro": "fal-ai/flux-pro/v1.1",
    "flux_dev": "fal-ai/flux/dev",
    "video": "fal-ai/kling-video/v1/standard/image-to-video",
    "dwpose": "fal-ai/fast-dwpose",
    "remove_bg": "fal-ai/birefnet/v2",
}


class FalClient(HttpAdapter):
    """Implements image, training, video, pose and background capabilities on fal.ai.

    Long jobs go through the queue protocol (submit, poll status, fetch result);
    quick ones use the synchronous ``fal.run`` endpoint.
    """

    provider = "fal"

    def __init__(
        self,
        api_key: Optional[str],
        timeout: float = 60.0,
        poll_interval: float = 2.0,
        max_poll_seconds: float = 900.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(timeout=timeout, client=client)
        self._api_key = api_key
        self._poll_interval = poll_interval
        self._max_poll_seconds = max_poll_seconds

    def _headers(self) -> dict:
        if not self._api_key:
            raise AdapterError("FAL_KEY is not configured", retryable=False)
        return {
            "Authorization": f"Key {self._api_key}",
            "Content-Type": "application/json",
        }

    async def subscribe(self, model: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Submit ``payload`` to the queue for ``model`` and wait for the result."""
        headers = self._headers()
        submitted = await self._json(
            "POST", f"{FAL_QUEUE_BASE}/{model}", json=payload, headers=headers
        )
        request_id = submitted.get("request_id")
        if not request_id:
            raise AdapterError(f"fal.ai returned no request_id: {submitted}")

        status_url = submitted.get(
            "status_url", f"{FAL_QUEUE_BASE}/{model}/requests/{request_id}/status"
        )
        response_url = submitted.get(
            "response_url", f"{FAL_QUEUE_BASE}/{model}/requests/{request_id}"
        )
        logger.info(f"fal.ai {model} queued: request_id={request_id}")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._max_poll_seconds
        while loop.time() < deadline:
            status_data = await self._json("GET", status_url, headers=headers)
            status = status_data.get("status", "")
            logger.debug(f"fal.ai {model} request_id={request_id} status={status}")
            if status == "COMPLETED":
                if status_data.get("error"):
                    raise AdapterError(f"fal.ai {model} failed: {status_data['error']}")
                return await self._json("GET", response_url, headers=headers)
            if status in ("FAILED", "ERROR"):
                raise AdapterError(
                    f"fal.ai {model} failed: {status_data.get('error', 'unknown error')}"
                )
            await asyncio.sleep(self._poll_interval)

        raise AdapterError(
            f"fal.ai {model} timed out after {self._max_poll_seconds}s (request_id={request_id})"
        )

    async def run(self, model: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._json(
            "POST", f"{FAL_RUN_BASE}/{model}", json=payload, headers=self._headers()
        )

    async def generate_images(self, request: ImageRequest) -> list[str]:
        # flux-pro does not accept LoRA weights
        model = FAL_MODELS["flux_dev"] if request.loras else FAL_MODELS["flux_pro"]
        payload: dict[str, Any] = {
            "prompt": request.prompt,
            "image_size": {"width": request.width, "height": request.height},
            "num_images": request.count,
            "enable_safety_checker": True,
        }
        if request.seed is not None:
            payload["seed"] = request.seed
        if request.loras:
            payload["loras"] = [lora.model_dump() for lora in request.loras]
            if request.num_inference_steps is not None:
                payload["num_inference_steps"] = request.num_inference_steps
            if request.guidance_scale is not None:
                payload["guidance_scale"] = request.guidance_scale

        result = await self.subscribe(model, payload)
        urls = [image["url"] for image in result.get("images", []) if image.get("url")]
        if not urls:
            raise AdapterError(f"fal.ai {model} returned no images")
        return urls

    async def train(self, request: TrainingRequest) -> TrainedWeights:
        result = await self.subscribe(
            FAL_MODELS["train_lora"],
            {
                "images_data_url": request.images_zip_url,
                "trigger_word": request.trigger_word,
                "steps": request.steps,
            },
        )
        try:
            return TrainedWeights(
                weights_url=result["diffusers_lora_file"]["url"],
                config_url=(result.get("config_file") or {}).get("url"),
            )
        except (KeyError, TypeError) as e:
            raise AdapterError(f"Unexpected LoRA training response: {result}") from e

    async def synthesize(self, request: VideoRequest) -> str:
        payload: dict[str, Any] = {
            "image_url": request.image_url,
            "prompt": request.prompt,
            "duration": str(request.duration),
            "aspect_ratio": request.aspect_ratio,
        }
        if request.cfg_scale is not None:
            payload["cfg_scale"] = request.cfg_scale
        result = await self.subscribe(FAL_MODELS["video"], payload)
        url = (result.get("video") or {}).get("url")
        if not url:
            raise AdapterError(f"fal.ai video model returned no video: {result}")
        return url

    async def extract_pose(self, image_url: str) -> str:
        result = await self.run(
            FAL_MODELS["dwpose"],
            {"image_url": image_url, "include_hands": True, "include_face": True},
        )
        url = (result.get("image") or {}).get("url")
        if not url:
            raise AdapterError(f"fal.ai DWPose returned no image: {result}")
        return url

    async def remove_background(self, image_url: str) -> str:
        result = await self.run(FAL_MODELS["remove_bg"], {"image_url": image_url})
        url = (result.get("image") or {}).get("url")
        if not url:
            raise AdapterError(f"fal.ai background removal returned no image: {result}")
        return url
