"""Scripted capability adapters and service wiring for workflow tests."""

from __future__ import annotations

from typing import Iterable, Optional

from runway.adapters import (
    Capabilities,
    ImageRequest,
    InMemoryStorage,
    SceneBrief,
    TrainedWeights,
    TrainingRequest,
    VideoRequest,
)
from runway.contracts import AdapterError
from runway.models import EntityRecord, Product, RecordKind, RecordStatus, UserProfile
from runway.notify import InMemoryNotifier, Notification
from runway.persistence import InMemoryExecutionRepository
from runway.services import Services
from runway.stores import InMemoryAccountStore, InMemoryEntityStore


class FakeImages:
    def __init__(self, fail_times: int = 0) -> None:
        self.fail_times = fail_times
        self.requests: list[ImageRequest] = []

    async def generate_images(self, request: ImageRequest) -> list[str]:
        self.requests.append(request)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise AdapterError("image provider unavailable")
        n = len(self.requests)
        return [f"https://img.test/{n}-{i}.png" for i in range(request.count)]


class FakeTrainer:
    def __init__(self, fail_always: bool = False) -> None:
        self.fail_always = fail_always
        self.requests: list[TrainingRequest] = []

    async def train(self, request: TrainingRequest) -> TrainedWeights:
        self.requests.append(request)
        if self.fail_always:
            raise AdapterError("training provider unavailable")
        return TrainedWeights(
            weights_url="https://weights.test/lora.safetensors",
            config_url="https://weights.test/config.json",
        )


class FakePoses:
    async def extract_pose(self, image_url: str) -> str:
        return f"{image_url}#pose"


class FakeVideos:
    def __init__(self) -> None:
        self.requests: list[VideoRequest] = []

    async def synthesize(self, request: VideoRequest) -> str:
        self.requests.append(request)
        return "https://video.test/output.mp4"


class FakePrompts:
    def __init__(self) -> None:
        self.briefs: list[SceneBrief] = []

    async def generate_scene_prompt(self, brief: SceneBrief) -> str:
        self.briefs.append(brief)
        return f"{brief.model_name} wearing {brief.product_name} on a city street"


class ScriptedQuality:
    """Returns the scripted scores in order, then repeats the last one."""

    def __init__(self, scores: Iterable[int] = (95,)) -> None:
        self.scores = list(scores)
        self.calls = 0

    async def score(self, image_url: str) -> int:
        index = min(self.calls, len(self.scores) - 1)
        self.calls += 1
        return self.scores[index]


class FakeBackgrounds:
    async def remove_background(self, image_url: str) -> str:
        return f"{image_url}#nobg"


class FakeMedia:
    def __init__(self, frames: Optional[list[bytes]] = None) -> None:
        self.frames = frames if frames is not None else [b"frame-1", b"frame-2", b"frame-3"]
        self.packaged: list[list[str]] = []

    async def sample_frames(
        self, video_url: str, fps: int = 1, max_frames: int = 30
    ) -> list[bytes]:
        return self.frames[:max_frames]

    async def package_images(self, image_urls: list[str]) -> bytes:
        self.packaged.append(list(image_urls))
        return b"PK\x03\x04fake"


class FailingNotifier:
    async def send(self, notification: Notification) -> None:
        raise RuntimeError("mail server down")


class CrashingRepository(InMemoryExecutionRepository):
    """Loses the database once, when the first attempt is being recorded."""

    def __init__(self) -> None:
        super().__init__()
        self.crashes = 0

    async def mark_attempt_started(self, execution_id: str, attempt: int) -> None:
        if self.crashes == 0:
            self.crashes += 1
            raise ConnectionError("database connection lost")
        await super().mark_attempt_started(execution_id, attempt)


def make_capabilities(**overrides) -> Capabilities:
    parts = dict(
        images=FakeImages(),
        trainer=FakeTrainer(),
        poses=FakePoses(),
        videos=FakeVideos(),
        prompts=FakePrompts(),
        quality=ScriptedQuality(),
        backgrounds=FakeBackgrounds(),
        media=FakeMedia(),
        storage=InMemoryStorage(),
    )
    parts.update(overrides)
    return Capabilities(**parts)


def make_services(notifier=None, quality_threshold: int = 90, **capabilities) -> Services:
    return Services(
        records=InMemoryEntityStore(),
        accounts=InMemoryAccountStore(),
        capabilities=make_capabilities(**capabilities),
        notifier=notifier if notifier is not None else InMemoryNotifier(),
        quality_threshold=quality_threshold,
    )


async def seed_user(
    services: Services,
    user_id: str = "user-1",
    credits: int = 100,
    email: Optional[str] = "ada@example.com",
    language: str = "en",
) -> UserProfile:
    return await services.accounts.create_profile(
        UserProfile(
            id=user_id,
            email=email,
            display_name="Ada",
            preferred_language=language,
            credits=credits,
        )
    )


async def seed_video_inputs(services: Services, user_id: str = "user-1") -> None:
    """An avatar and a product for video jobs to reference."""
    await services.records.insert(
        RecordKind.AVATARS,
        EntityRecord(
            id="avatar-1",
            user_id=user_id,
            status=RecordStatus.COMPLETED,
            name="Mina",
            lora_weights_url="https://weights.test/mina.safetensors",
            metadata={"trigger_word": "ohwx_avatar-1"},
        ),
    )
    await services.records.add_product(
        Product(id="product-1", user_id=user_id, name="linen blazer", type="outerwear")
    )
