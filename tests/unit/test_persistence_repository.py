import pytest

from runway.persistence import (
    InMemoryExecutionRepository,
    SQLiteExecutionRepository,
    get_repository,
)


@pytest.fixture(params=["memory", "sqlite"])
def repo(request, tmp_path):
    if request.param == "memory":
        return InMemoryExecutionRepository()
    return SQLiteExecutionRepository(tmp_path / "history.db")


@pytest.mark.asyncio
async def test_execution_lifecycle(repo):
    assert await repo.create_execution("e-1", "generate-video", "video/generate", {"jobId": "j"})
    await repo.mark_attempt_started("e-1", 1)
    await repo.mark_step_started("e-1", "generate-prompt", attempt=1)
    await repo.mark_step_completed(
        "e-1", "generate-prompt", status="completed", output={"data": "p"}, attempt=1
    )
    await repo.mark_attempt_started("e-1", 2)
    await repo.mark_execution_completed("e-1", "failed", error="boom")

    execution = await repo.get_execution("e-1")
    assert execution.workflow_name == "generate-video"
    assert execution.event_name == "video/generate"
    assert execution.payload == {"jobId": "j"}
    assert execution.status == "failed"
    assert execution.error == "boom"
    assert execution.attempts == 2
    assert [(s.step_name, s.attempt, s.status) for s in execution.steps] == [
        ("generate-prompt", 1, "completed")
    ]
    assert execution.steps[0].completed_at is not None


@pytest.mark.asyncio
async def test_create_is_idempotent(repo):
    assert await repo.create_execution("e-1", "wf", "ev", {})
    assert not await repo.create_execution("e-1", "wf", "ev", {})
    assert len(await repo.list_executions()) == 1


@pytest.mark.asyncio
async def test_step_output_prefers_latest_completed_attempt(repo):
    await repo.create_execution("e-1", "wf", "ev", {})
    await repo.mark_step_started("e-1", "scene", attempt=1)
    await repo.mark_step_completed("e-1", "scene", "completed", {"data": "first"}, attempt=1)
    await repo.mark_step_started("e-1", "scene", attempt=2)
    await repo.mark_step_completed("e-1", "scene", "failed", {"error": "x"}, attempt=2)
    await repo.mark_step_started("e-1", "scene", attempt=3)
    await repo.mark_step_completed("e-1", "scene", "completed", {"data": "third"}, attempt=3)

    assert await repo.get_step_output("e-1", "scene") == {"data": "third"}
    assert await repo.get_step_output("e-1", "other") is None
    assert await repo.get_step_output("missing", "scene") is None


@pytest.mark.asyncio
async def test_missing_execution(repo):
    assert await repo.get_execution("nope") is None


def test_get_repository_selects_backend(tmp_path):
    assert isinstance(get_repository(), InMemoryExecutionRepository)
    repo = get_repository(f"sqlite://{tmp_path / 'h.db'}")
    assert isinstance(repo, SQLiteExecutionRepository)
    # the configured instance is reused afterwards
    assert get_repository() is repo
    with pytest.raises(ValueError):
        get_repository("mysql://nope")
