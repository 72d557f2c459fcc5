"""External capability adapters and the factory that wires them from config."""

from __future__ import annotations

import logging
from typing import Optional

from ..config import RunwayConfig, load_config
from .base import (
    BackgroundRemover,
    Capabilities,
    ImageRequest,
    ImageSynthesizer,
    LoraWeight,
    MediaToolkit,
    ObjectStorage,
    PersonalizationTrainer,
    PoseExtractor,
    PromptGenerator,
    QualityScorer,
    SceneBrief,
    TrainedWeights,
    TrainingRequest,
    VideoRequest,
    VideoSynthesizer,
)
from .fal import FalClient
from .llm import ScenePromptAgent, VisionQualityScorer
from .media import FFmpegToolkit
from .replicate import ReplicateClient
from .storage import InMemoryStorage, SupabaseStorage

logger = logging.getLogger(__name__)


def build_capabilities(config: Optional[RunwayConfig] = None) -> Capabilities:
    """Create the production adapter bundle described by ``config.providers``."""

    config = config or load_config()
    providers = config.providers
    fal = FalClient(
        providers.fal_key,
        timeout=providers.http_timeout,
        poll_interval=providers.poll_interval,
        max_poll_seconds=providers.max_poll_seconds,
    )
    replicate = ReplicateClient(
        providers.replicate_api_token,
        timeout=providers.http_timeout,
        poll_interval=providers.poll_interval,
        max_poll_seconds=providers.max_poll_seconds,
    )

    if providers.supabase_url and providers.supabase_service_role_key:
        storage: ObjectStorage = SupabaseStorage(
            providers.supabase_url,
            providers.supabase_service_role_key,
            timeout=providers.http_timeout,
        )
    else:
        logger.warning("Supabase storage not configured, keeping artifacts in memory")
        storage = InMemoryStorage()

    return Capabilities(
        images=replicate if providers.image_provider == "replicate" else fal,
        trainer=fal,
        poses=fal,
        videos=replicate if providers.video_provider == "replicate" else fal,
        prompts=ScenePromptAgent(providers.llm_model),
        quality=VisionQualityScorer(providers.llm_model),
        backgrounds=fal,
        media=FFmpegToolkit(),
        storage=storage,
    )


__all__ = [
    "BackgroundRemover",
    "Capabilities",
    "FFmpegToolkit",
    "FalClient",
    "ImageRequest",
    "ImageSynthesizer",
    "InMemoryStorage",
    "LoraWeight",
    "MediaToolkit",
    "ObjectStorage",
    "PersonalizationTrainer",
    "PoseExtractor",
    "PromptGenerator",
    "QualityScorer",
    "ReplicateClient",
    "SceneBrief",
    "ScenePromptAgent",
    "SupabaseStorage",
    "TrainedWeights",
    "TrainingRequest",
    "VideoRequest",
    "VideoSynthesizer",
    "VisionQualityScorer",
    "build_capabilities",
]
