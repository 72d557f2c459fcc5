"""Workflow execution engine for runway."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .config import EngineConfig
from .constants import TRIGGER_TOPIC
from .contracts import StepFailed, WorkflowTrigger
from .definition import WorkflowContext, WorkflowDefinition
from .models import ExecutionStatus
from .persistence import ExecutionRepository, get_repository
from .registry import REGISTRY, WorkflowRegistry
from .services import Services
from .steps import StepExecutor
from .transports import BaseTransport
from .utils.retry import schedule_retry

logger = logging.getLogger(__name__)


class ExecutionResult(BaseModel):
    """Outcome of handling one trigger."""

    execution_id: str
    workflow_name: str
    status: ExecutionStatus
    attempts: int = 0
    error: Optional[str] = None
    outputs: Dict[str, Any] = Field(default_factory=dict)
    duplicate: bool = False


FINISHED_STATUSES = {ExecutionStatus.SUCCEEDED.value, ExecutionStatus.FAILED.value}


def is_terminal(error: BaseException) -> bool:
    """Errors flagged non-retryable skip the remaining attempts."""
    return isinstance(error, StepFailed) and not error.retryable


class WorkflowEngine:
    """Consumes triggers and drives each matching workflow to a terminal state."""

    def __init__(
        self,
        transport: BaseTransport,
        services: Services,
        registry: WorkflowRegistry | None = None,
        repository: ExecutionRepository | None = None,
        config: EngineConfig | None = None,
        topic: str = TRIGGER_TOPIC,
    ) -> None:
        self._transport = transport
        self._services = services
        self._registry = registry if registry is not None else REGISTRY
        self._repository = repository or get_repository()
        self._config = config or EngineConfig()
        self._topic = topic

    @property
    def repository(self) -> ExecutionRepository:
        return self._repository

    async def start(self, lifespan: Optional[float] = None) -> None:
        """Listen for triggers on the configured topic.

        Each trigger runs in its own task; at most ``max_concurrency`` run at
        once. A message is acked after its execution finished.
        """
        semaphore = asyncio.Semaphore(max(1, self._config.max_concurrency))
        tasks: set[asyncio.Task] = set()

        async for raw_message, trigger in self._transport.subscribe(
            self._topic, lifespan=lifespan
        ):
            if trigger.event_name not in self._registry:
                logger.warning(
                    f"No workflow registered for event {trigger.event_name}, "
                    f"rejecting trigger {trigger.trigger_id}"
                )
                await self._transport.nack(raw_message, requeue=False)
                continue

            await semaphore.acquire()
            task = asyncio.create_task(self._consume(raw_message, trigger, semaphore))
            tasks.add(task)
            task.add_done_callback(tasks.discard)

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _consume(
        self, raw_message: Any, trigger: WorkflowTrigger, semaphore: asyncio.Semaphore
    ) -> None:
        try:
            await self.handle(trigger)
        except Exception:
            logger.exception(f"Engine error while handling trigger {trigger.trigger_id}")
            await self._transport.nack(raw_message, requeue=True)
            return
        finally:
            semaphore.release()
        await self._transport.ack(raw_message)

    async def handle(self, trigger: WorkflowTrigger) -> ExecutionResult:
        """Run the workflow for ``trigger`` to completion.

        Step failures never escape; they end in a ``failed`` result after
        compensation. Raises ``UnknownWorkflow`` for unregistered events.

        A trigger whose execution already succeeded or failed is skipped. One
        left ``running`` by a crashed worker is picked up at the attempt after
        the last one recorded, and compensated if no attempts remain.
        """
        definition = self._registry.resolve(trigger.event_name)
        execution_id = trigger.trigger_id

        first_attempt = 1
        created = await self._repository.create_execution(
            execution_id, definition.name, trigger.event_name, trigger.payload
        )
        if not created:
            existing = await self._repository.get_execution(execution_id)
            if existing is None or existing.status in FINISHED_STATUSES:
                logger.info(f"Trigger {execution_id} already executed, skipping")
                return ExecutionResult(
                    execution_id=execution_id,
                    workflow_name=definition.name,
                    status=ExecutionStatus(existing.status) if existing else ExecutionStatus.RUNNING,
                    attempts=existing.attempts if existing else 0,
                    error=existing.error if existing else None,
                    duplicate=True,
                )
            # an interrupted attempt still counts against the budget
            first_attempt = existing.attempts + 1
            logger.warning(
                f"Resuming interrupted execution_id={execution_id} of {definition.name} "
                f"after {existing.attempts} attempt(s)"
            )

        logger.info(
            f"Starting {definition.name} for execution_id={execution_id} "
            f"(up to {definition.retries} attempts)"
        )

        ctx: WorkflowContext | None = None
        last_error: BaseException | None = None
        attempt = first_attempt - 1
        for attempt in range(first_attempt, definition.retries + 1):
            await self._repository.mark_attempt_started(execution_id, attempt)
            executor = StepExecutor(
                execution_id,
                attempt,
                repository=self._repository,
                resume=self._config.resume_completed_steps,
            )
            ctx = WorkflowContext(definition, trigger, self._services, executor, attempt)
            try:
                ctx.payload = definition.parse_payload(trigger.payload)
                await self._run_attempt(definition, ctx)
            except Exception as e:
                last_error = e
                if is_terminal(e):
                    logger.error(
                        f"{definition.name} attempt {attempt} failed with a terminal error: {e}"
                    )
                    break
                logger.warning(
                    f"{definition.name} attempt {attempt}/{definition.retries} failed: {e}"
                )
                if attempt < definition.retries:
                    await schedule_retry(
                        attempt, self._config.backoff_base, self._config.backoff_jitter
                    )
                continue

            await self._repository.mark_execution_completed(
                execution_id, ExecutionStatus.SUCCEEDED.value
            )
            logger.info(f"{definition.name} succeeded for execution_id={execution_id}")
            return ExecutionResult(
                execution_id=execution_id,
                workflow_name=definition.name,
                status=ExecutionStatus.SUCCEEDED,
                attempts=attempt,
                outputs=executor.outputs,
            )

        if ctx is None:
            last_error = StepFailed(
                f"Retry budget of {definition.retries} attempts spent before the "
                "execution was interrupted",
                retryable=False,
            )
            logger.error(f"{definition.name} execution_id={execution_id}: {last_error}")
            ctx = WorkflowContext(
                definition,
                trigger,
                self._services,
                StepExecutor(execution_id, attempt, repository=self._repository),
                attempt,
                payload=trigger.payload,
            )

        await self._compensate(definition, ctx, last_error)
        await self._repository.mark_execution_completed(
            execution_id, ExecutionStatus.FAILED.value, error=str(last_error)
        )
        return ExecutionResult(
            execution_id=execution_id,
            workflow_name=definition.name,
            status=ExecutionStatus.FAILED,
            attempts=attempt,
            error=str(last_error),
        )

    async def _run_attempt(self, definition: WorkflowDefinition, ctx: WorkflowContext) -> None:
        for step in definition.steps:
            await ctx.executor.run(
                step.name, lambda step=step: step.fn(ctx), resumable=step.resumable
            )

    async def _compensate(
        self,
        definition: WorkflowDefinition,
        ctx: WorkflowContext | None,
        error: BaseException | None,
    ) -> None:
        if definition.on_failure is None or ctx is None or error is None:
            return
        logger.info(f"Running compensation for {definition.name} ({ctx.execution_id})")
        try:
            await definition.on_failure(ctx, error)
        except Exception:
            logger.exception(
                f"Compensation for {definition.name} ({ctx.execution_id}) failed"
            )
