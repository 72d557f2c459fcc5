"""Built-in workflow catalogue."""

from __future__ import annotations

from ..registry import REGISTRY, WorkflowRegistry, register_workflow
from .avatar import GENERATE_AVATAR
from .custom_avatar import GENERATE_CUSTOM_AVATAR
from .hybrid_avatar import GENERATE_HYBRID_AVATAR
from .transfer import VIDEO_TRANSFER
from .video import GENERATE_VIDEO

BUILTIN_WORKFLOWS = (
    GENERATE_AVATAR,
    GENERATE_CUSTOM_AVATAR,
    GENERATE_HYBRID_AVATAR,
    GENERATE_VIDEO,
    VIDEO_TRANSFER,
)


def build_registry() -> WorkflowRegistry:
    """A fresh registry holding only the built-in workflows."""
    registry = WorkflowRegistry()
    for definition in BUILTIN_WORKFLOWS:
        registry.register(definition)
    return registry


for _definition in BUILTIN_WORKFLOWS:
    register_workflow(_definition)


__all__ = [
    "BUILTIN_WORKFLOWS",
    "GENERATE_AVATAR",
    "GENERATE_CUSTOM_AVATAR",
    "GENERATE_HYBRID_AVATAR",
    "GENERATE_VIDEO",
    "VIDEO_TRANSFER",
    "REGISTRY",
    "build_registry",
]
