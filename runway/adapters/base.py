"""Typed request/response contracts for the external AI capabilities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from pydantic import BaseModel, Field


class LoraWeight(BaseModel):
    path: str
    scale: float = 1.0


class ImageRequest(BaseModel):
    prompt: str
    count: int = Field(default=1, ge=1)
    width: int = 1024
    height: int = 1024
    negative_prompt: Optional[str] = None
    num_inference_steps: Optional[int] = None
    guidance_scale: Optional[float] = None
    loras: list[LoraWeight] = Field(default_factory=list)
    seed: Optional[int] = None


class TrainingRequest(BaseModel):
    images_zip_url: str
    trigger_word: str
    steps: int = 1000


class TrainedWeights(BaseModel):
    weights_url: str
    config_url: Optional[str] = None


class VideoRequest(BaseModel):
    image_url: str
    prompt: str
    duration: int = 5
    aspect_ratio: str = "9:16"
    cfg_scale: Optional[float] = None


class SceneBrief(BaseModel):
    """Structured inputs the scene prompt is written from."""

    model_name: str
    product_name: str
    product_type: Optional[str] = None
    background: Optional[str] = None
    action: Optional[str] = None
    video_size: Optional[str] = None


class ImageSynthesizer(Protocol):
    async def generate_images(self, request: ImageRequest) -> list[str]:
        """Return the URLs of ``request.count`` generated images."""


class PersonalizationTrainer(Protocol):
    async def train(self, request: TrainingRequest) -> TrainedWeights:
        """Train personalization weights from a zip of images."""


class PoseExtractor(Protocol):
    async def extract_pose(self, image_url: str) -> str:
        """Return the URL of a pose map rendered from ``image_url``."""


class VideoSynthesizer(Protocol):
    async def synthesize(self, request: VideoRequest) -> str:
        """Return the URL of a video animated from a still image."""


class BackgroundRemover(Protocol):
    async def remove_background(self, image_url: str) -> str:
        ...


class PromptGenerator(Protocol):
    async def generate_scene_prompt(self, brief: SceneBrief) -> str:
        ...


class QualityScorer(Protocol):
    async def score(self, image_url: str) -> int:
        """Rate an image from 0 to 100."""


class MediaToolkit(Protocol):
    async def sample_frames(
        self, video_url: str, fps: int = 1, max_frames: int = 30
    ) -> list[bytes]:
        """Download a video and return PNG frames sampled at ``fps``."""

    async def package_images(self, image_urls: list[str]) -> bytes:
        """Download images and return them as a zip archive."""


class ObjectStorage(Protocol):
    async def upload(
        self, bucket: str, path: str, data: bytes, content_type: str
    ) -> str:
        """Store ``data`` (overwriting) and return its public URL."""


@dataclass
class Capabilities:
    """Bundle of adapters handed to workflow steps."""

    images: ImageSynthesizer
    trainer: PersonalizationTrainer
    poses: PoseExtractor
    videos: VideoSynthesizer
    prompts: PromptGenerator
    quality: QualityScorer
    backgrounds: BackgroundRemover
    media: MediaToolkit
    storage: ObjectStorage
