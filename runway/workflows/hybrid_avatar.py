"""Hybrid avatar: composite previews from weighted body-part references."""

from __future__ import annotations

import asyncio
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..adapters import ImageRequest
from ..constants import HYBRID_AVATAR_COST, HYBRID_AVATAR_RETRIES
from ..definition import Step, WorkflowContext, WorkflowDefinition
from ..models import EntityRecord, RecordKind, RecordStatus
from ..notify import NotificationKind
from .common import complete_record, compensation, notify_owner

BASE_PROMPTS = (
    "professional portrait photo, detailed facial features, studio lighting, fashion photography",
    "full body fashion shot, elegant pose, runway style, high-end commercial",
    "editorial style portrait, natural expression, magazine quality",
    "three-quarter view portrait, confident pose, professional photography",
)

PART_DESCRIPTORS = {
    "face": "striking facial features",
    "body": "athletic build",
    "hair": "distinctive hairstyle",
    "legs": "long elegant legs",
    "skin_tone": "even skin tone",
}

# references weighing more than this shape the prompt
DESCRIPTOR_THRESHOLD = 0.5


class BodyPartReference(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    part: Literal["face", "body", "hair", "legs", "skin_tone"]
    image_url: str = Field(alias="imageUrl")
    weight: float = Field(ge=0)

    @field_validator("weight")
    @classmethod
    def _normalise_weight(cls, v: float) -> float:
        # the upload form sends percentages
        return v / 100 if v > 1 else v


class HybridAvatarPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    avatar_id: str = Field(alias="avatarId")
    references: list[BodyPartReference] = Field(min_length=1)


def composite_prompts(references: list[BodyPartReference]) -> list[str]:
    descriptors = []
    for part, descriptor in PART_DESCRIPTORS.items():
        ref = next((r for r in references if r.part == part), None)
        if ref is not None and ref.weight > DESCRIPTOR_THRESHOLD:
            descriptors.append(descriptor)
    suffix = "".join(f", {d}" for d in descriptors)
    return [f"{base}{suffix}, photorealistic, 8k quality, professional" for base in BASE_PROMPTS]


async def initialize(ctx: WorkflowContext) -> EntityRecord:
    payload: HybridAvatarPayload = ctx.payload
    await ctx.record()
    return await ctx.progress(
        10,
        "Initializing",
        status=RecordStatus.PROCESSING,
        metadata={"reference_parts": [r.part for r in payload.references]},
    )


async def generate_composite(ctx: WorkflowContext) -> list[str]:
    payload: HybridAvatarPayload = ctx.payload
    await ctx.progress(40, "Generating composite")
    images = ctx.services.capabilities.images
    results = await asyncio.gather(
        *(
            images.generate_images(
                ImageRequest(
                    prompt=prompt,
                    count=1,
                    width=768,
                    height=1024,
                    num_inference_steps=40,
                    guidance_scale=4.0,
                )
            )
            for prompt in composite_prompts(payload.references)
        )
    )
    return [urls[0] for urls in results]


async def finalize(ctx: WorkflowContext) -> EntityRecord:
    return await complete_record(
        ctx, current_step="Completed", preview_images=ctx.output("generate-composite")
    )


async def send_notification(ctx: WorkflowContext) -> bool:
    avatar: EntityRecord = ctx.output("finalize")
    return await notify_owner(
        ctx,
        avatar.user_id,
        "avatar_complete",
        NotificationKind.SUCCESS,
        {
            "avatar_name": avatar.extras.get("name") or "Hybrid avatar",
            "avatar_id": avatar.id,
            "preview_images": avatar.preview_images,
        },
    )


GENERATE_HYBRID_AVATAR = WorkflowDefinition(
    name="generate-hybrid-avatar",
    event="avatar/generate-hybrid",
    description="Generate Hybrid AI Avatar (Multi-Reference)",
    steps=(
        Step("initialize", initialize),
        Step("generate-composite", generate_composite),
        Step("finalize", finalize),
        Step("send-notification", send_notification),
    ),
    retries=HYBRID_AVATAR_RETRIES,
    cost=HYBRID_AVATAR_COST,
    refund_on_failure=True,
    on_failure=compensation(),
    payload_model=HybridAvatarPayload,
    record_kind=RecordKind.HYBRID_AVATARS,
    record_key="avatarId",
)
