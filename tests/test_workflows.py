"""End-to-end runs of the built-in workflows against scripted adapters."""

import pytest

from runway.contracts import StepFailed
from runway.definition import Step, WorkflowDefinition
from runway.dispatch import JobDispatcher
from runway.execute import WorkflowEngine
from runway.models import EntityRecord, ExecutionStatus, RecordKind, RecordStatus, TransactionType
from runway.notify import InMemoryNotifier, NotificationKind
from runway.registry import WorkflowRegistry
from runway.transports import InMemoryTransport
from runway.workflows import build_registry
from runway.workflows.common import complete_record, compensation

from fixtures.fakes import (
    CrashingRepository,
    FailingNotifier,
    FakeImages,
    FakeTrainer,
    ScriptedQuality,
    make_services,
    seed_user,
    seed_video_inputs,
)


async def run_job(services, repository, engine_config, event, record, payload=None, registry=None):
    registry = registry or build_registry()
    transport = InMemoryTransport()
    dispatcher = JobDispatcher(transport, services.records, services.accounts, registry=registry)
    trigger = await dispatcher.submit(event, record, payload)
    engine = WorkflowEngine(
        transport, services, registry=registry, repository=repository, config=engine_config
    )
    return await engine.handle(trigger)


def assert_progress_ends_complete(services, kind, record_id):
    progress = services.records.progress_history(kind, record_id)
    assert progress == sorted(progress), f"progress went backwards: {progress}"
    assert progress[-1] == 100


@pytest.mark.asyncio
async def test_avatar_generation(services, repository, engine_config):
    await seed_user(services)
    record = EntityRecord(id="avatar-9", user_id="user-1", name="Luna", style="fashion")

    result = await run_job(services, repository, engine_config, "avatar/generate", record)

    assert result.status == ExecutionStatus.SUCCEEDED
    avatar = await services.records.get(RecordKind.AVATARS, "avatar-9")
    assert avatar.status == RecordStatus.COMPLETED
    assert avatar.completed_at is not None
    assert len(avatar.preview_images) == 4
    assert services.records.progress_history(RecordKind.AVATARS, "avatar-9") == [10, 50, 100]

    request = services.capabilities.images.requests[0]
    assert request.count == 4
    assert "high fashion model" in request.prompt

    sent = services.notifier.sent
    assert [(n.template, n.kind, n.to) for n in sent] == [
        ("avatar_complete", NotificationKind.SUCCESS, "ada@example.com")
    ]
    assert sent[0].data["avatar_name"] == "Luna"
    assert (await services.accounts.get_profile("user-1")).credits == 90


@pytest.mark.asyncio
async def test_avatar_failure_is_not_refunded(repository, engine_config):
    services = make_services(images=FakeImages(fail_times=10))
    await seed_user(services)
    record = EntityRecord(id="avatar-9", user_id="user-1", style="casual")

    result = await run_job(services, repository, engine_config, "avatar/generate", record)

    assert result.status == ExecutionStatus.FAILED
    assert result.attempts == 3
    avatar = await services.records.get(RecordKind.AVATARS, "avatar-9")
    assert avatar.status == RecordStatus.FAILED
    assert avatar.error_message == "image provider unavailable"
    assert (await services.accounts.get_profile("user-1")).credits == 90
    ledger = await services.accounts.transactions("user-1")
    assert [tx.type for tx in ledger] == [TransactionType.USAGE]


@pytest.mark.asyncio
async def test_transient_image_failure_recovers_on_retry(repository, engine_config):
    services = make_services(images=FakeImages(fail_times=1))
    await seed_user(services)
    record = EntityRecord(id="avatar-9", user_id="user-1", style="beauty")

    result = await run_job(services, repository, engine_config, "avatar/generate", record)

    assert result.status == ExecutionStatus.SUCCEEDED
    assert result.attempts == 2
    statuses = services.records.status_history(RecordKind.AVATARS, "avatar-9")
    assert statuses[-1] == RecordStatus.COMPLETED
    assert RecordStatus.FAILED not in statuses


@pytest.mark.asyncio
async def test_custom_avatar_training(services, repository, engine_config):
    await seed_user(services)
    record = EntityRecord(id="custom-avatar-1", user_id="user-1", name="Joon")
    photos = [f"https://uploads.test/{i}.jpg" for i in range(5)]

    result = await run_job(
        services,
        repository,
        engine_config,
        "avatar/generate-custom",
        record,
        {"trainingImages": photos},
    )

    assert result.status == ExecutionStatus.SUCCEEDED
    avatar = await services.records.get(RecordKind.AVATARS, "custom-avatar-1")
    assert avatar.status == RecordStatus.COMPLETED
    assert avatar.lora_weights_url == "https://weights.test/lora.safetensors"
    assert avatar.metadata["trigger_word"] == "ohwx_custom-a"
    assert avatar.metadata["stage"] == "completed"
    assert len(avatar.preview_images) == 4
    assert_progress_ends_complete(services, RecordKind.AVATARS, "custom-avatar-1")

    caps = services.capabilities
    assert caps.media.packaged == [photos]
    assert ("avatar-training", "custom-avatar-1/training.zip") in caps.storage.objects
    training = caps.trainer.requests[0]
    assert training.images_zip_url == "memory://avatar-training/custom-avatar-1/training.zip"
    assert training.trigger_word == "ohwx_custom-a"
    assert all(r.loras[0].path == avatar.lora_weights_url for r in caps.images.requests)
    assert all(r.prompt.startswith("ohwx_custom-a ") for r in caps.images.requests)
    assert (await services.accounts.get_profile("user-1")).credits == 80


@pytest.mark.asyncio
async def test_custom_avatar_refund_after_exhausted_retries(repository, engine_config):
    services = make_services(trainer=FakeTrainer(fail_always=True))
    await seed_user(services, credits=100)
    record = EntityRecord(id="custom-avatar-1", user_id="user-1")

    result = await run_job(
        services,
        repository,
        engine_config,
        "avatar/generate-custom",
        record,
        {"trainingImages": ["https://uploads.test/1.jpg"]},
    )

    assert result.status == ExecutionStatus.FAILED
    assert result.attempts == 2
    assert len(services.capabilities.trainer.requests) == 2
    assert (await services.accounts.get_profile("user-1")).credits == 100

    ledger = await services.accounts.transactions("user-1")
    refunds = [tx for tx in ledger if tx.type == TransactionType.REFUND]
    assert len(refunds) == 1
    assert refunds[0].amount == 20
    assert refunds[0].balance_after == 100
    assert sum(tx.amount for tx in ledger) == 0

    avatar = await services.records.get(RecordKind.AVATARS, "custom-avatar-1")
    assert avatar.status == RecordStatus.FAILED
    assert avatar.error_message == "training provider unavailable"


@pytest.mark.asyncio
async def test_custom_avatar_requires_training_images(services, repository, engine_config):
    await seed_user(services)
    record = EntityRecord(id="custom-avatar-2", user_id="user-1")

    result = await run_job(
        services, repository, engine_config, "avatar/generate-custom", record, {"trainingImages": []}
    )

    assert result.status == ExecutionStatus.FAILED
    assert result.attempts == 1
    assert services.capabilities.trainer.requests == []
    assert (await services.accounts.get_profile("user-1")).credits == 100


@pytest.mark.asyncio
async def test_hybrid_avatar(services, repository, engine_config):
    await seed_user(services)
    record = EntityRecord(id="hybrid-1", user_id="user-1", name="Blend")
    references = [
        {"part": "face", "imageUrl": "https://uploads.test/face.jpg", "weight": 80},
        {"part": "hair", "imageUrl": "https://uploads.test/hair.jpg", "weight": 0.3},
    ]

    result = await run_job(
        services,
        repository,
        engine_config,
        "avatar/generate-hybrid",
        record,
        {"references": references},
    )

    assert result.status == ExecutionStatus.SUCCEEDED
    avatar = await services.records.get(RecordKind.HYBRID_AVATARS, "hybrid-1")
    assert avatar.status == RecordStatus.COMPLETED
    assert avatar.metadata["reference_parts"] == ["face", "hair"]
    assert len(avatar.preview_images) == 4
    assert services.records.progress_history(RecordKind.HYBRID_AVATARS, "hybrid-1") == [10, 40, 100]

    prompts = [r.prompt for r in services.capabilities.images.requests]
    assert len(prompts) == 4
    assert all("striking facial features" in p for p in prompts)
    assert not any("distinctive hairstyle" in p for p in prompts)
    assert (await services.accounts.get_profile("user-1")).credits == 75


@pytest.mark.asyncio
async def test_video_generation(services, repository, engine_config):
    await seed_user(services)
    await seed_video_inputs(services)
    record = EntityRecord(
        id="job-1",
        user_id="user-1",
        avatar_id="avatar-1",
        product_id="product-1",
        background_id="city-street",
        action_type="walk",
        video_size="16:9",
    )

    result = await run_job(services, repository, engine_config, "video/generate", record)

    assert result.status == ExecutionStatus.SUCCEEDED
    job = await services.records.get(RecordKind.JOBS, "job-1")
    assert job.status == RecordStatus.COMPLETED
    assert job.output_video_url == "https://video.test/output.mp4"
    assert job.thumbnail_url == job.metadata["scene_image_url"]
    assert job.metadata["generated_prompt"] == "Mina wearing linen blazer on a city street"
    assert job.metadata["quality_score"] == 95
    assert services.records.progress_history(RecordKind.JOBS, "job-1") == [10, 30, 50, 70, 90, 100]

    caps = services.capabilities
    brief = caps.prompts.briefs[0]
    assert (brief.background, brief.action, brief.product_type) == ("city-street", "walk", "outerwear")
    scene = caps.images.requests[0]
    assert (scene.width, scene.height) == (1344, 768)
    assert caps.videos.requests[0].image_url == job.thumbnail_url
    assert caps.videos.requests[0].aspect_ratio == "16:9"
    assert [n.template for n in services.notifier.sent] == ["video_complete"]


@pytest.mark.asyncio
async def test_quality_gate_forces_second_attempt(repository, engine_config):
    quality = ScriptedQuality([85, 95])
    services = make_services(quality=quality)
    await seed_user(services)
    await seed_video_inputs(services)
    record = EntityRecord(id="job-2", user_id="user-1", avatar_id="avatar-1", product_id="product-1")

    result = await run_job(services, repository, engine_config, "video/generate", record)

    assert result.status == ExecutionStatus.SUCCEEDED
    assert result.attempts == 2
    assert quality.calls == 2
    assert len(services.capabilities.videos.requests) == 1
    statuses = services.records.status_history(RecordKind.JOBS, "job-2")
    assert statuses.count(RecordStatus.COMPLETED) == 1
    assert statuses[-1] == RecordStatus.COMPLETED

    execution = await repository.get_execution(result.execution_id)
    failed = [s for s in execution.steps if s.status == "failed"]
    assert [(s.attempt, s.step_name) for s in failed] == [(1, "quality-check")]


@pytest.mark.asyncio
async def test_video_failure_notifies_without_refund(repository, engine_config):
    services = make_services(quality=ScriptedQuality([50]))
    await seed_user(services)
    await seed_video_inputs(services)
    record = EntityRecord(id="job-3", user_id="user-1", avatar_id="avatar-1", product_id="product-1")

    result = await run_job(services, repository, engine_config, "video/generate", record)

    assert result.status == ExecutionStatus.FAILED
    assert result.attempts == 3
    job = await services.records.get(RecordKind.JOBS, "job-3")
    assert job.status == RecordStatus.FAILED
    assert "score 50 below 90" in job.error_message
    assert (await services.accounts.get_profile("user-1")).credits == 80

    sent = services.notifier.sent
    assert [(n.template, n.kind) for n in sent] == [("video_failed", NotificationKind.FAILURE)]
    assert sent[0].data["job_id"] == "job-3"


@pytest.mark.asyncio
async def test_video_with_missing_avatar_fails_fast(services, repository, engine_config):
    await seed_user(services)
    record = EntityRecord(id="job-4", user_id="user-1", avatar_id="ghost", product_id="product-1")

    result = await run_job(services, repository, engine_config, "video/generate", record)

    assert result.status == ExecutionStatus.FAILED
    assert result.attempts == 1
    assert "avatars record ghost not found" in result.error


@pytest.mark.asyncio
async def test_failed_notification_does_not_block_failed_status(repository, engine_config):
    services = make_services(notifier=FailingNotifier(), quality=ScriptedQuality([10]))
    await seed_user(services)
    await seed_video_inputs(services)
    record = EntityRecord(id="job-5", user_id="user-1", avatar_id="avatar-1", product_id="product-1")

    result = await run_job(services, repository, engine_config, "video/generate", record)

    assert result.status == ExecutionStatus.FAILED
    job = await services.records.get(RecordKind.JOBS, "job-5")
    assert job.status == RecordStatus.FAILED


@pytest.mark.asyncio
async def test_failed_success_notification_keeps_completion(repository, engine_config):
    services = make_services(notifier=FailingNotifier())
    await seed_user(services)
    record = EntityRecord(id="avatar-10", user_id="user-1")

    result = await run_job(services, repository, engine_config, "avatar/generate", record)

    assert result.status == ExecutionStatus.SUCCEEDED
    assert result.outputs["send-notification"] is False


@pytest.mark.asyncio
async def test_video_transfer(services, repository, engine_config):
    await seed_user(services)
    await seed_video_inputs(services)
    record = EntityRecord(id="transfer-1", user_id="user-1")
    payload = {
        "sourceVideoUrl": "https://uploads.test/source.mp4",
        "avatarId": "avatar-1",
        "productIds": ["product-1", "missing-product"],
        "keepBackground": True,
    }

    result = await run_job(services, repository, engine_config, "video/transfer", record, payload)

    assert result.status == ExecutionStatus.SUCCEEDED
    job = await services.records.get(RecordKind.TRANSFER_JOBS, "transfer-1")
    assert job.status == RecordStatus.COMPLETED
    assert job.metadata["frame_count"] == 3
    assert job.metadata["keep_background"] is True
    assert job.metadata["pose_url"] == "memory://transfer-videos/transfer-1/first-frame.png#pose"
    assert job.output_video_url == "https://video.test/output.mp4"
    assert services.records.progress_history(RecordKind.TRANSFER_JOBS, "transfer-1") == [
        5, 20, 40, 70, 100
    ]

    caps = services.capabilities
    assert caps.storage.objects[("transfer-videos", "transfer-1/first-frame.png")] == (
        b"frame-1",
        "image/png",
    )
    frame = caps.images.requests[0]
    assert frame.prompt.startswith("ohwx_avatar-1 professional fashion model, wearing linen blazer")
    assert [lora.path for lora in frame.loras] == ["https://weights.test/mina.safetensors"]
    assert caps.videos.requests[0].image_url == job.thumbnail_url
    assert (await services.accounts.get_profile("user-1")).credits == 70


@pytest.mark.asyncio
async def test_video_transfer_refunds_on_missing_avatar(services, repository, engine_config):
    await seed_user(services)
    record = EntityRecord(id="transfer-2", user_id="user-1")
    payload = {"sourceVideoUrl": "https://uploads.test/source.mp4", "avatarId": "ghost"}

    result = await run_job(services, repository, engine_config, "video/transfer", record, payload)

    assert result.status == ExecutionStatus.FAILED
    assert result.attempts == 1
    assert (await services.accounts.get_profile("user-1")).credits == 100
    job = await services.records.get(RecordKind.TRANSFER_JOBS, "transfer-2")
    assert job.status == RecordStatus.FAILED
    assert [n.template for n in services.notifier.sent] == ["video_failed"]


@pytest.mark.asyncio
async def test_compensation_leaves_completed_records_alone(services, repository, engine_config):
    await seed_user(services)

    async def start(ctx):
        await ctx.progress(10, status=RecordStatus.PROCESSING)

    async def finish(ctx):
        await complete_record(ctx)

    async def explode(ctx):
        raise StepFailed("late failure", retryable=False)

    definition = WorkflowDefinition(
        name="late-failure",
        event="test/late",
        steps=(Step("start", start), Step("finish", finish), Step("explode", explode)),
        cost=15,
        refund_on_failure=True,
        on_failure=compensation(),
        record_kind=RecordKind.AVATARS,
        record_key="avatarId",
    )
    registry = WorkflowRegistry()
    registry.register(definition)
    record = EntityRecord(id="avatar-11", user_id="user-1")

    result = await run_job(
        services, repository, engine_config, "test/late", record, registry=registry
    )

    assert result.status == ExecutionStatus.FAILED
    avatar = await services.records.get(RecordKind.AVATARS, "avatar-11")
    assert avatar.status == RecordStatus.COMPLETED
    assert (await services.accounts.get_profile("user-1")).credits == 85


@pytest.mark.asyncio
async def test_user_without_email_gets_no_notification(repository, engine_config):
    services = make_services()
    await seed_user(services, email=None)
    record = EntityRecord(id="avatar-12", user_id="user-1")

    result = await run_job(services, repository, engine_config, "avatar/generate", record)

    assert result.status == ExecutionStatus.SUCCEEDED
    assert isinstance(services.notifier, InMemoryNotifier)
    assert services.notifier.sent == []


@pytest.mark.asyncio
async def test_redelivered_trigger_finishes_after_engine_crash(services, engine_config):
    await seed_user(services)
    registry = build_registry()
    transport = InMemoryTransport()
    repository = CrashingRepository()
    dispatcher = JobDispatcher(transport, services.records, services.accounts, registry=registry)
    trigger = await dispatcher.submit(
        "avatar/generate-custom",
        EntityRecord(id="custom-avatar-9", user_id="user-1"),
        {"trainingImages": ["https://uploads.test/1.jpg"]},
    )
    engine = WorkflowEngine(
        transport, services, registry=registry, repository=repository, config=engine_config
    )

    with pytest.raises(ConnectionError):
        await engine.handle(trigger)
    result = await engine.handle(trigger)

    assert not result.duplicate
    assert result.status == ExecutionStatus.SUCCEEDED
    avatar = await services.records.get(RecordKind.AVATARS, "custom-avatar-9")
    assert avatar.status == RecordStatus.COMPLETED
    assert (await services.accounts.get_profile("user-1")).credits == 80


@pytest.mark.asyncio
async def test_quality_rejection_with_resume_generates_a_new_scene(repository, engine_config):
    quality = ScriptedQuality([85, 95])
    services = make_services(quality=quality)
    await seed_user(services)
    await seed_video_inputs(services)
    record = EntityRecord(id="job-8", user_id="user-1", avatar_id="avatar-1", product_id="product-1")
    config = engine_config.model_copy(update={"resume_completed_steps": True})

    result = await run_job(services, repository, config, "video/generate", record)

    assert result.status == ExecutionStatus.SUCCEEDED
    assert result.attempts == 2
    caps = services.capabilities
    assert len(caps.prompts.briefs) == 1
    assert len(caps.images.requests) == 2
    assert quality.calls == 2
    job = await services.records.get(RecordKind.JOBS, "job-8")
    assert job.thumbnail_url == caps.videos.requests[0].image_url
    assert job.metadata["quality_score"] == 95


@pytest.mark.asyncio
async def test_video_transfer_without_background(services, repository, engine_config):
    await seed_user(services)
    await seed_video_inputs(services)
    record = EntityRecord(id="transfer-3", user_id="user-1")
    payload = {
        "sourceVideoUrl": "https://uploads.test/walk.mp4",
        "avatarId": "avatar-1",
        "productIds": ["product-1"],
        "keepBackground": False,
    }

    result = await run_job(services, repository, engine_config, "video/transfer", record, payload)

    assert result.status == ExecutionStatus.SUCCEEDED
    job = await services.records.get(RecordKind.TRANSFER_JOBS, "transfer-3")
    assert job.metadata["background_removed"] is True
    assert job.thumbnail_url.endswith("#nobg")
    assert services.capabilities.videos.requests[0].image_url == job.thumbnail_url


@pytest.mark.asyncio
async def test_failure_after_completion_does_not_burn_attempts(
    services, repository, engine_config
):
    await seed_user(services)
    calls = {"start": 0}

    async def start(ctx):
        calls["start"] += 1
        await ctx.progress(10, status=RecordStatus.PROCESSING)

    async def finish(ctx):
        await complete_record(ctx)

    async def notify(ctx):
        raise StepFailed("profile lookup timed out")

    definition = WorkflowDefinition(
        name="completed-then-flaky",
        event="test/completed-flaky",
        steps=(Step("start", start), Step("finish", finish), Step("notify", notify)),
        retries=3,
        cost=15,
        refund_on_failure=True,
        on_failure=compensation(),
        record_kind=RecordKind.AVATARS,
        record_key="avatarId",
    )
    registry = WorkflowRegistry()
    registry.register(definition)
    record = EntityRecord(id="avatar-13", user_id="user-1")

    result = await run_job(
        services, repository, engine_config, "test/completed-flaky", record, registry=registry
    )

    assert result.status == ExecutionStatus.FAILED
    assert result.attempts == 2
    assert calls["start"] == 2
    assert "cannot move from completed" in result.error
    avatar = await services.records.get(RecordKind.AVATARS, "avatar-13")
    assert avatar.status == RecordStatus.COMPLETED
    assert (await services.accounts.get_profile("user-1")).credits == 85
