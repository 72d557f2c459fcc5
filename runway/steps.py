"""Step executor: runs named units of work and memoizes their outputs."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from .checkpoint import OutputDeserializer, OutputSerializer
from .contracts import SerializedOutput
from .persistence import ExecutionRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StepExecutor:
    """Runs the steps of one execution attempt.

    Within an attempt a step name is executed at most once; a second ``run``
    with the same name returns the captured output. A new executor is created
    for every attempt, so memoization does not survive a retry unless
    ``resume`` is enabled, in which case completed step outputs are read back
    from the execution repository. Restoring stops at the first step of the
    attempt that has to run, so nothing after a re-run step is served from
    an older checkpoint.
    """

    def __init__(
        self,
        execution_id: str,
        attempt: int = 1,
        repository: ExecutionRepository | None = None,
        resume: bool = False,
    ) -> None:
        self.execution_id = execution_id
        self.attempt = attempt
        self._repository = repository
        self._resume = resume
        self._outputs: Dict[str, Any] = {}

    @property
    def outputs(self) -> Dict[str, Any]:
        return dict(self._outputs)

    def has_output(self, name: str) -> bool:
        return name in self._outputs

    def output(self, name: str) -> Any:
        """Return the captured output of step ``name``."""
        if name not in self._outputs:
            raise KeyError(f"Step '{name}' has not completed in attempt {self.attempt}")
        return self._outputs[name]

    async def run(
        self, name: str, fn: Callable[[], Awaitable[T]], resumable: bool = True
    ) -> T:
        if name in self._outputs:
            logger.debug(f"Step {name} already completed in attempt {self.attempt}")
            return self._outputs[name]

        if self._resume and resumable:
            restored = await self._restore(name)
            if restored is not None:
                self._outputs[name] = restored[0]
                return restored[0]
        # nothing after a step that runs is restored
        self._resume = False

        if self._repository is not None:
            await self._repository.mark_step_started(
                self.execution_id, name, attempt=self.attempt
            )

        try:
            result = await fn()
        except Exception as e:
            logger.warning(
                f"Step {name} failed for execution_id={self.execution_id} "
                f"(attempt {self.attempt}): {e}"
            )
            if self._repository is not None:
                await self._repository.mark_step_completed(
                    self.execution_id,
                    name,
                    status="failed",
                    output={"error": str(e)},
                    attempt=self.attempt,
                )
            raise

        self._outputs[name] = result

        if self._repository is not None:
            await self._repository.mark_step_completed(
                self.execution_id,
                name,
                status="completed",
                output=self._checkpoint(name, result),
                attempt=self.attempt,
            )
        logger.info(
            f"Step {name} completed for execution_id={self.execution_id} (attempt {self.attempt})"
        )
        return result

    def _checkpoint(self, name: str, result: Any) -> Optional[dict]:
        try:
            return OutputSerializer.serialize(result).model_dump()
        except ValueError as e:
            logger.warning(f"Output of step {name} cannot be checkpointed: {e}")
            return None

    async def _restore(self, name: str) -> Optional[tuple[Any]]:
        """Look up a completed output from an earlier attempt.

        Returns a one-element tuple so that a legitimately ``None`` output can
        be told apart from a missing checkpoint.
        """
        if self._repository is None:
            return None
        stored = await self._repository.get_step_output(self.execution_id, name)
        if not stored or not stored.get("module"):
            return None
        try:
            value = OutputDeserializer.deserialize(SerializedOutput.model_validate(stored))
        except ValueError as e:
            logger.warning(f"Checkpoint for step {name} is unusable, re-running: {e}")
            return None
        logger.info(
            f"Step {name} resumed from checkpoint for execution_id={self.execution_id}"
        )
        return (value,)
