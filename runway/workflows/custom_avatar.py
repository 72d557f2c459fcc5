"""Custom avatar: train LoRA weights on the user's photos, then render previews."""

from __future__ import annotations

import asyncio

from pydantic import BaseModel, ConfigDict, Field

from ..adapters import ImageRequest, LoraWeight, TrainingRequest
from ..constants import CUSTOM_AVATAR_COST, CUSTOM_AVATAR_RETRIES, LORA_TRAINING_STEPS
from ..definition import Step, WorkflowContext, WorkflowDefinition
from ..models import EntityRecord, RecordKind, RecordStatus
from ..notify import NotificationKind
from .common import complete_record, compensation, notify_owner

PREVIEW_PROMPTS = (
    "{trigger} professional portrait, studio lighting, high quality fashion photography",
    "{trigger} full body shot, walking pose, fashion runway, professional photography",
    "{trigger} headshot, natural smile, commercial photography style",
    "{trigger} elegant pose, editorial fashion, high-end magazine quality",
)


class CustomAvatarPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    avatar_id: str = Field(alias="avatarId")
    training_images: list[str] = Field(alias="trainingImages", min_length=1)


class TrainingArchive(BaseModel):
    zip_url: str
    trigger_word: str


class LoraModel(BaseModel):
    weights_url: str
    config_url: str | None = None
    trigger_word: str


def trigger_word_for(avatar_id: str) -> str:
    return f"ohwx_{avatar_id[:8]}"


async def start_training(ctx: WorkflowContext) -> EntityRecord:
    await ctx.record()
    return await ctx.progress(
        0, "Preparing", status=RecordStatus.PROCESSING, metadata={"stage": "preparing"}
    )


async def prepare_zip(ctx: WorkflowContext) -> TrainingArchive:
    payload: CustomAvatarPayload = ctx.payload
    services = ctx.services
    await ctx.progress(10, "Preparing training data", metadata={"stage": "preparing"})
    archive = await services.capabilities.media.package_images(payload.training_images)
    zip_url = await services.capabilities.storage.upload(
        services.storage_bucket_training,
        f"{payload.avatar_id}/training.zip",
        archive,
        "application/zip",
    )
    return TrainingArchive(zip_url=zip_url, trigger_word=trigger_word_for(payload.avatar_id))


async def train_lora(ctx: WorkflowContext) -> LoraModel:
    archive: TrainingArchive = ctx.output("prepare-zip")
    await ctx.progress(30, "Training model", metadata={"stage": "training"})
    weights = await ctx.services.capabilities.trainer.train(
        TrainingRequest(
            images_zip_url=archive.zip_url,
            trigger_word=archive.trigger_word,
            steps=LORA_TRAINING_STEPS,
        )
    )
    return LoraModel(
        weights_url=weights.weights_url,
        config_url=weights.config_url,
        trigger_word=archive.trigger_word,
    )


async def generate_previews(ctx: WorkflowContext) -> list[str]:
    lora: LoraModel = ctx.output("train-lora")
    await ctx.progress(70, "Generating previews", metadata={"stage": "generating_previews"})
    images = ctx.services.capabilities.images
    results = await asyncio.gather(
        *(
            images.generate_images(
                ImageRequest(
                    prompt=template.format(trigger=lora.trigger_word),
                    count=1,
                    width=768,
                    height=1024,
                    num_inference_steps=28,
                    guidance_scale=3.5,
                    loras=[LoraWeight(path=lora.weights_url, scale=1.0)],
                )
            )
            for template in PREVIEW_PROMPTS
        )
    )
    return [urls[0] for urls in results]


async def finalize(ctx: WorkflowContext) -> EntityRecord:
    lora: LoraModel = ctx.output("train-lora")
    return await complete_record(
        ctx,
        current_step="Completed",
        preview_images=ctx.output("generate-previews"),
        lora_weights_url=lora.weights_url,
        metadata={
            "stage": "completed",
            "lora_config_url": lora.config_url,
            "trigger_word": lora.trigger_word,
            "is_custom": True,
        },
    )


async def send_notification(ctx: WorkflowContext) -> bool:
    avatar: EntityRecord = ctx.output("finalize")
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


GENERATE_CUSTOM_AVATAR = WorkflowDefinition(
    name="generate-custom-avatar",
    event="avatar/generate-custom",
    description="Generate Custom AI Avatar (LoRA Training)",
    steps=(
        Step("start-training", start_training),
        Step("prepare-zip", prepare_zip),
        Step("train-lora", train_lora),
        Step("generate-previews", generate_previews),
        Step("finalize", finalize),
        Step("send-notification", send_notification),
    ),
    retries=CUSTOM_AVATAR_RETRIES,
    cost=CUSTOM_AVATAR_COST,
    refund_on_failure=True,
    on_failure=compensation(),
    payload_model=CustomAvatarPayload,
    record_kind=RecordKind.AVATARS,
    record_key="avatarId",
)
