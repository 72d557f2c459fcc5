"""Real model transfer: re-render a source video with one of the user's avatars."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ..adapters import ImageRequest, LoraWeight, VideoRequest
from ..constants import (
    TRANSFER_COST,
    TRANSFER_MAX_FRAMES,
    TRANSFER_RETRIES,
    TRANSFER_SAMPLE_FPS,
)
from ..contracts import AdapterError, RecordNotFound
from ..definition import Step, WorkflowContext, WorkflowDefinition
from ..models import EntityRecord, Product, RecordKind, RecordStatus
from ..notify import NotificationKind
from .common import complete_record, compensation, notify_owner

ANIMATION_PROMPT = "smooth natural movement, professional fashion video, high quality"


class TransferPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")
    source_video_url: str = Field(alias="sourceVideoUrl")
    avatar_id: str = Field(alias="avatarId")
    product_ids: list[str] = Field(default_factory=list, alias="productIds")
    keep_background: bool = Field(default=True, alias="keepBackground")


class SourceFrames(BaseModel):
    reference_frame_url: str
    frame_count: int


class TransferAssets(BaseModel):
    avatar: EntityRecord
    products: list[Product] = Field(default_factory=list)


def frame_prompt(avatar: EntityRecord, products: list[Product]) -> str:
    prompt = ""
    trigger_word = avatar.metadata.get("trigger_word")
    if trigger_word:
        prompt += f"{trigger_word} "
    prompt += "professional fashion model, "
    if products:
        prompt += f"wearing {', '.join(p.name for p in products)}, "
    return prompt + "high quality commercial photography, full body shot"


async def download_video(ctx: WorkflowContext) -> SourceFrames:
    payload: TransferPayload = ctx.payload
    services = ctx.services
    await ctx.record()
    await ctx.progress(
        5,
        "Extracting frames",
        status=RecordStatus.PROCESSING,
        metadata={"keep_background": payload.keep_background},
    )
    frames = await services.capabilities.media.sample_frames(
        payload.source_video_url, fps=TRANSFER_SAMPLE_FPS, max_frames=TRANSFER_MAX_FRAMES
    )
    if not frames:
        raise AdapterError("No frames could be sampled from the source video")
    reference_url = await services.capabilities.storage.upload(
        services.storage_bucket_transfer,
        f"{payload.job_id}/first-frame.png",
        frames[0],
        "image/png",
    )
    await ctx.update_record(
        metadata={"frame_count": len(frames), "reference_frame_url": reference_url}
    )
    return SourceFrames(reference_frame_url=reference_url, frame_count=len(frames))


async def extract_pose(ctx: WorkflowContext) -> str:
    frames: SourceFrames = ctx.output("download-video")
    await ctx.progress(20, "Extracting pose")
    pose_url = await ctx.services.capabilities.poses.extract_pose(frames.reference_frame_url)
    await ctx.update_record(metadata={"pose_url": pose_url})
    return pose_url


async def load_assets(ctx: WorkflowContext) -> TransferAssets:
    payload: TransferPayload = ctx.payload
    records = ctx.services.records
    avatar = await records.get(RecordKind.AVATARS, payload.avatar_id)
    if avatar is None:
        raise RecordNotFound(RecordKind.AVATARS.value, payload.avatar_id)
    products = await records.get_products(payload.product_ids)
    return TransferAssets(avatar=avatar, products=products)


async def generate_frame(ctx: WorkflowContext) -> str:
    assets: TransferAssets = ctx.output("load-assets")
    await ctx.progress(40, "Generating frame")
    loras = (
        [LoraWeight(path=assets.avatar.lora_weights_url, scale=1.0)]
        if assets.avatar.lora_weights_url
        else []
    )
    urls = await ctx.services.capabilities.images.generate_images(
        ImageRequest(
            prompt=frame_prompt(assets.avatar, assets.products),
            count=1,
            width=1024,
            height=1536,
            num_inference_steps=40,
            guidance_scale=3.5,
            loras=loras,
        )
    )
    if not urls:
        raise AdapterError("Frame synthesis returned no image")
    frame_url = urls[0]
    payload: TransferPayload = ctx.payload
    if not payload.keep_background:
        frame_url = await ctx.services.capabilities.backgrounds.remove_background(frame_url)
        await ctx.update_record(metadata={"background_removed": True})
    return frame_url


async def animate_video(ctx: WorkflowContext) -> str:
    frame_url: str = ctx.output("generate-frame")
    await ctx.progress(70, "Animating video")
    return await ctx.services.capabilities.videos.synthesize(
        VideoRequest(
            image_url=frame_url,
            prompt=ANIMATION_PROMPT,
            duration=5,
            aspect_ratio="9:16",
            cfg_scale=0.5,
        )
    )


async def finalize(ctx: WorkflowContext) -> EntityRecord:
    return await complete_record(
        ctx,
        current_step="Completed",
        output_video_url=ctx.output("animate-video"),
        thumbnail_url=ctx.output("generate-frame"),
    )


async def send_notification(ctx: WorkflowContext) -> bool:
    job: EntityRecord = ctx.output("finalize")
    return await notify_owner(
        ctx,
        job.user_id,
        "video_complete",
        NotificationKind.SUCCESS,
        {
            "job_id": job.id,
            "video_url": job.output_video_url,
            "thumbnail_url": job.thumbnail_url,
        },
    )


VIDEO_TRANSFER = WorkflowDefinition(
    name="video-transfer",
    event="video/transfer",
    description="Real Model Video Transfer",
    steps=(
        Step("download-video", download_video),
        Step("extract-pose", extract_pose),
        Step("load-assets", load_assets),
        Step("generate-frame", generate_frame),
        Step("animate-video", animate_video),
        Step("finalize", finalize),
        Step("send-notification", send_notification),
    ),
    retries=TRANSFER_RETRIES,
    cost=TRANSFER_COST,
    refund_on_failure=True,
    on_failure=compensation(notify_failure=True),
    payload_model=TransferPayload,
    record_kind=RecordKind.TRANSFER_JOBS,
    record_key="jobId",
)
