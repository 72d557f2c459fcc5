import pytest

from runway.contracts import UnknownWorkflow
from runway.definition import Step, WorkflowDefinition
from runway.registry import WorkflowRegistry, describe
from runway.registry.models import WorkflowDescriptor
from runway.workflows import BUILTIN_WORKFLOWS, REGISTRY, build_registry


async def _noop(ctx):
    return None


def test_builtin_catalogue():
    registry = build_registry()
    expected = {
        "avatar/generate": ("generate-avatar", 3, 10, False),
        "avatar/generate-custom": ("generate-custom-avatar", 2, 20, True),
        "avatar/generate-hybrid": ("generate-hybrid-avatar", 2, 25, True),
        "video/generate": ("generate-video", 3, 20, False),
        "video/transfer": ("video-transfer", 2, 30, True),
    }
    assert len(registry) == len(expected)
    for event, (name, retries, cost, refund) in expected.items():
        definition = registry.resolve(event)
        assert (definition.name, definition.retries, definition.cost, definition.refund_on_failure) == (
            name,
            retries,
            cost,
            refund,
        )
        assert definition.on_failure is not None


def test_global_registry_holds_builtins():
    for definition in BUILTIN_WORKFLOWS:
        assert REGISTRY.get(definition.event) is definition


def test_video_step_order():
    assert build_registry().resolve("video/generate").step_names == [
        "generate-prompt",
        "generate-scene-image",
        "quality-check",
        "generate-video",
        "finalize",
        "send-notification",
    ]


def test_duplicate_event_rejected_unless_replaced():
    registry = WorkflowRegistry()
    first = WorkflowDefinition(name="a", event="x/y", steps=(Step("s", _noop),))
    second = WorkflowDefinition(name="b", event="x/y", steps=(Step("s", _noop),))
    registry.register(first)
    registry.register(first)

    with pytest.raises(ValueError):
        registry.register(second)
    registry.register(second, replace=True)
    assert registry.resolve("x/y") is second


def test_resolve_unknown_event():
    with pytest.raises(UnknownWorkflow):
        WorkflowRegistry().resolve("nope")
    assert "nope" not in WorkflowRegistry()


def test_snapshot_serializes():
    snapshot = build_registry().snapshot()
    data = snapshot.model_dump(mode="json")
    assert {wf["event"] for wf in data["workflows"]} >= {"video/generate", "video/transfer"}
    descriptor = describe(build_registry().resolve("video/transfer"))
    assert descriptor.record_kind == "transfer_jobs"
    assert descriptor.steps[0] == "download-video"


def test_descriptor_requires_event():
    with pytest.raises(ValueError):
        WorkflowDescriptor(name="x", event="", retries=1)
