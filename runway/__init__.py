"""runway: durable step workflows for AI fashion media jobs."""

from .contracts import (
    QualityGateRejected,
    StepFailed,
    TerminalStepError,
    WorkflowError,
    WorkflowTrigger,
)
from .definition import Step, WorkflowContext, WorkflowDefinition
from .dispatch import JobDispatcher
from .execute import ExecutionResult, WorkflowEngine
from .persistence import get_repository
from .registry import REGISTRY, WorkflowRegistry
from .services import Services, build_services
from .steps import StepExecutor
from .transports import get_transport
from . import workflows

__version__ = "0.1.0"
__all__ = [
    "ExecutionResult",
    "JobDispatcher",
    "QualityGateRejected",
    "REGISTRY",
    "Services",
    "Step",
    "StepExecutor",
    "StepFailed",
    "TerminalStepError",
    "WorkflowContext",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowError",
    "WorkflowRegistry",
    "WorkflowTrigger",
    "build_services",
    "get_repository",
    "get_transport",
    "workflows",
]
