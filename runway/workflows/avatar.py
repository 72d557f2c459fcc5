"""Preset avatar generation: four style-keyed image variations."""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field

from ..adapters import ImageRequest
from ..constants import AVATAR_COST, AVATAR_RETRIES, PREVIEW_COUNT
from ..contracts import AdapterError
from ..definition import Step, WorkflowContext, WorkflowDefinition
from ..models import EntityRecord, RecordKind, RecordStatus
from ..notify import NotificationKind
from .common import complete_record, compensation, notify_owner

logger = logging.getLogger(__name__)

STYLE_PROMPTS = {
    "realistic": "professional headshot, realistic photography, natural lighting, elegant woman, detailed facial features, commercial photography style",
    "fashion": "high fashion model, editorial photography, dramatic lighting, elegant pose, vogue style, sophisticated beauty",
    "beauty": "beauty photography, soft lighting, flawless skin, professional makeup, cosmetic advertisement style",
    "editorial": "editorial fashion photography, artistic lighting, creative composition, magazine cover style",
    "casual": "casual lifestyle photography, natural beauty, soft natural lighting, approachable friendly style",
}
DEFAULT_STYLE = "realistic"
NEGATIVE_PROMPT = "ugly, deformed, noisy, blurry, distorted, low quality, worst quality"


class AvatarPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    avatar_id: str = Field(alias="avatarId")


def style_prompt(style: str | None) -> str:
    if style not in STYLE_PROMPTS:
        logger.warning(f"Unknown avatar style {style!r}, using {DEFAULT_STYLE}")
        style = DEFAULT_STYLE
    return STYLE_PROMPTS[style]


async def fetch_avatar(ctx: WorkflowContext) -> EntityRecord:
    await ctx.record()
    return await ctx.progress(10, "Fetching avatar", status=RecordStatus.PROCESSING)


async def generate_images(ctx: WorkflowContext) -> list[str]:
    avatar: EntityRecord = ctx.output("fetch-avatar")
    await ctx.progress(50, "Generating images")
    prompt = style_prompt(avatar.extras.get("style"))
    images = await ctx.services.capabilities.images.generate_images(
        ImageRequest(
            prompt=f"{prompt}, professional quality, 8k uhd, hyper detailed",
            negative_prompt=NEGATIVE_PROMPT,
            count=PREVIEW_COUNT,
            width=1024,
            height=1536,
            num_inference_steps=50,
            guidance_scale=7.5,
        )
    )
    if not images:
        raise AdapterError("Image synthesis returned no images")
    return images


async def save_images(ctx: WorkflowContext) -> EntityRecord:
    images: list[str] = ctx.output("generate-images")
    return await complete_record(ctx, preview_images=images, current_step="Completed")


async def send_notification(ctx: WorkflowContext) -> bool:
    avatar: EntityRecord = ctx.output("save-images")
    return await notify_owner(
        ctx,
        avatar.user_id,
        "avatar_complete",
        NotificationKind.SUCCESS,
        {
            "avatar_name": avatar.extras.get("name") or "Avatar",
            "avatar_id": avatar.id,
            "preview_images": avatar.preview_images,
        },
    )


GENERATE_AVATAR = WorkflowDefinition(
    name="generate-avatar",
    event="avatar/generate",
    description="Generate AI Avatar",
    steps=(
        Step("fetch-avatar", fetch_avatar),
        Step("generate-images", generate_images),
        Step("save-images", save_images),
        Step("send-notification", send_notification),
    ),
    retries=AVATAR_RETRIES,
    cost=AVATAR_COST,
    refund_on_failure=False,
    on_failure=compensation(),
    payload_model=AvatarPayload,
    record_kind=RecordKind.AVATARS,
    record_key="avatarId",
)
