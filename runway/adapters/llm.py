"""LLM-backed capabilities built on pydantic-ai agents."""

from __future__ import annotations

import logging
from typing import Optional, Union

from pydantic import BaseModel, Field
from pydantic_ai import Agent, ImageUrl
from pydantic_ai.models import Model

from ..contracts import AdapterError
from .base import SceneBrief

logger = logging.getLogger(__name__)

SCENE_SYSTEM_PROMPT = (
    "You are an expert fashion photography prompt generator for AI image generation. "
    "Generate a detailed, cinematic prompt for a fashion scene based on the provided "
    "information. Focus on lighting, composition, mood, and product details. "
    "Reply with the prompt only."
)

QUALITY_PROMPT = """Analyze this fashion image and rate its quality from 0-100 based on:
- Image clarity and sharpness
- Proper lighting and composition
- Professional fashion photography standards
- Product visibility
- Overall aesthetic quality"""


class QualityVerdict(BaseModel):
    score: int = Field(ge=0, le=100, description="Overall quality score from 0 to 100")


ModelRef = Union[str, Model]


class ScenePromptAgent:
    """Writes the scene prompt for a video job from its structured brief."""

    def __init__(self, model: ModelRef = "openai:gpt-4o") -> None:
        self._model = model
        self._agent: Optional[Agent] = None

    @property
    def agent(self) -> Agent:
        # Built lazily so a missing API key only fails the steps that need it
        if self._agent is None:
            self._agent = Agent(
                self._model, output_type=str, system_prompt=SCENE_SYSTEM_PROMPT
            )
        return self._agent

    async def generate_scene_prompt(self, brief: SceneBrief) -> str:
        product = brief.product_name
        if brief.product_type:
            product += f" ({brief.product_type})"
        request = (
            "Generate a prompt for:\n"
            f"- Model: {brief.model_name}\n"
            f"- Product: {product}\n"
            f"- Background: {brief.background or 'studio'}\n"
            f"- Action: {brief.action or 'standing pose'}\n"
            f"- Video size: {brief.video_size or '9:16'}\n\n"
            "The scene should be professional, cinematic, and highlight the product clearly."
        )
        try:
            result = await self.agent.run(request)
        except Exception as e:
            raise AdapterError(f"Scene prompt generation failed: {e}") from e
        prompt = result.output.strip()
        if not prompt:
            raise AdapterError("Scene prompt generation returned an empty prompt")
        return prompt


class VisionQualityScorer:
    """Scores an image with a vision model and a structured ``QualityVerdict``."""

    def __init__(self, model: ModelRef = "openai:gpt-4o") -> None:
        self._model = model
        self._agent: Optional[Agent] = None

    @property
    def agent(self) -> Agent:
        if self._agent is None:
            self._agent = Agent(self._model, output_type=QualityVerdict)
        return self._agent

    async def score(self, image_url: str) -> int:
        try:
            result = await self.agent.run([QUALITY_PROMPT, ImageUrl(url=image_url)])
        except Exception as e:
            raise AdapterError(f"Quality scoring failed: {e}") from e
        logger.info(f"Quality score {result.output.score} for {image_url}")
        return result.output.score
