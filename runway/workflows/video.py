"""Video generation: scene prompt, scene image, quality gate, image-to-video."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ..adapters import ImageRequest, SceneBrief, VideoRequest
from ..constants import VIDEO_COST, VIDEO_RETRIES
from ..contracts import AdapterError, QualityGateRejected, RecordNotFound
from ..definition import Step, WorkflowContext, WorkflowDefinition
from ..models import EntityRecord, RecordKind, RecordStatus
from ..notify import NotificationKind
from .common import complete_record, compensation, notify_owner

SCENE_NEGATIVE_PROMPT = (
    "ugly, deformed, noisy, blurry, distorted, low quality, worst quality, watermark, text"
)
VIDEO_MOTION_PROMPT = "smooth natural movement, professional fashion video, high quality"


class VideoPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")


def scene_size(video_size: str | None) -> tuple[int, int]:
    """Scene image dimensions for a job's aspect ratio."""
    if video_size == "1:1":
        return 1024, 1024
    if video_size == "16:9":
        return 1344, 768
    return 1024, 1344


async def generate_prompt(ctx: WorkflowContext) -> str:
    services = ctx.services
    job = await ctx.record()
    await ctx.progress(10, "Generating prompt", status=RecordStatus.PROCESSING)

    avatar_id = job.extras.get("avatar_id")
    avatar = await services.records.get(RecordKind.AVATARS, avatar_id) if avatar_id else None
    if avatar is None:
        raise RecordNotFound(RecordKind.AVATARS.value, str(avatar_id))

    product_id = job.extras.get("product_id")
    products = await services.records.get_products([product_id] if product_id else [])
    if not products:
        raise RecordNotFound("products", str(product_id))
    product = products[0]

    prompt = await services.capabilities.prompts.generate_scene_prompt(
        SceneBrief(
            model_name=avatar.extras.get("name") or "Model",
            product_name=product.name,
            product_type=product.type,
            background=job.extras.get("background_id"),
            action=job.extras.get("action_type"),
            video_size=job.extras.get("video_size"),
        )
    )
    await ctx.update_record(metadata={"generated_prompt": prompt})
    return prompt


async def generate_scene_image(ctx: WorkflowContext) -> str:
    prompt: str = ctx.output("generate-prompt")
    job = await ctx.progress(30, "Generating scene image")
    width, height = scene_size(job.extras.get("video_size"))
    urls = await ctx.services.capabilities.images.generate_images(
        ImageRequest(
            prompt=f"{prompt}, professional fashion photography, high quality, 8k uhd, hyper detailed",
            negative_prompt=SCENE_NEGATIVE_PROMPT,
            count=1,
            width=width,
            height=height,
            num_inference_steps=30,
            guidance_scale=7.5,
        )
    )
    if not urls:
        raise AdapterError("Scene image synthesis returned no image")
    await ctx.update_record(metadata={"scene_image_url": urls[0]})
    return urls[0]


async def quality_check(ctx: WorkflowContext) -> int:
    scene_url: str = ctx.output("generate-scene-image")
    await ctx.progress(50, "Quality check")
    score = await ctx.services.capabilities.quality.score(scene_url)
    await ctx.update_record(metadata={"quality_score": score})
    threshold = ctx.services.quality_threshold
    if score < threshold:
        raise QualityGateRejected(score, threshold)
    return score


async def generate_video(ctx: WorkflowContext) -> str:
    scene_url: str = ctx.output("generate-scene-image")
    job = await ctx.progress(70, "Generating video")
    video_url = await ctx.services.capabilities.videos.synthesize(
        VideoRequest(
            image_url=scene_url,
            prompt=VIDEO_MOTION_PROMPT,
            aspect_ratio=job.extras.get("video_size") or "9:16",
        )
    )
    await ctx.update_record(metadata={"video_output_url": video_url})
    return video_url


async def finalize(ctx: WorkflowContext) -> EntityRecord:
    await ctx.progress(90, "Finalizing")
    return await complete_record(
        ctx,
        current_step="Completed",
        output_video_url=ctx.output("generate-video"),
        thumbnail_url=ctx.output("generate-scene-image"),
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


GENERATE_VIDEO = WorkflowDefinition(
    name="generate-video",
    event="video/generate",
    description="Generate Fashion Video",
    steps=(
        Step("generate-prompt", generate_prompt),
        Step("generate-scene-image", generate_scene_image, resumable=False),
        Step("quality-check", quality_check),
        Step("generate-video", generate_video),
        Step("finalize", finalize),
        Step("send-notification", send_notification),
    ),
    retries=VIDEO_RETRIES,
    cost=VIDEO_COST,
    refund_on_failure=False,
    on_failure=compensation(notify_failure=True),
    payload_model=VideoPayload,
    record_kind=RecordKind.JOBS,
    record_key="jobId",
)
