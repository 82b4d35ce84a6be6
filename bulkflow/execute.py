"""Execution engine for bulk workflows."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from pydantic import ValidationError

from .config import BulkflowConfig, RetryConfig, load_config
from .contracts import (
    Execution,
    ExecutionProgress,
    ExecutionStatus,
    ItemId,
    StepOptions,
    StepOutcome,
    WorkflowStep,
    WorkflowTemplate,
)
from .errors import InvalidExecutionRequest, StepNotSkippable, StepValidationError
from .events import SnapshotBus
from .persistence import HistoryRepository, get_repository
from .progress import ExecutionRecorder
from .registry import REGISTRY, TemplateRegistry
from .steps import run_step
from .utils import retry

logger = logging.getLogger(__name__)

StepOverrides = Mapping[str, Mapping[str, Any]]


def _check_items(items: Iterable[ItemId]) -> List[ItemId]:
    if isinstance(items, (str, bytes)):
        raise InvalidExecutionRequest(
            f"Items must be a collection of ids, not a single string: {items!r}"
        )
    checked = list(items)
    if not checked:
        raise InvalidExecutionRequest("A bulk workflow needs at least one item")
    for item in checked:
        if not isinstance(item, str) or not item:
            raise InvalidExecutionRequest(f"Item ids must be non-empty strings, got {item!r}")
    if len(set(checked)) != len(checked):
        raise InvalidExecutionRequest("Item ids must be unique")
    return checked


class ExecutionController:
    """Drive one execution of a template through its steps.

    Steps run strictly in template order. Pause and cancel are cooperative
    and only take effect between steps; an in-flight action is never
    interrupted.
    """

    def __init__(
        self,
        template: WorkflowTemplate,
        items: Iterable[ItemId],
        options: Optional[StepOverrides] = None,
        bus: Optional[SnapshotBus] = None,
        repository: HistoryRepository | None = None,
        retry_config: Optional[RetryConfig] = None,
    ) -> None:
        self.template = template
        self._resolved = self._resolve_options(template, options or {})
        self.execution = Execution(
            template_id=template.id,
            items=_check_items(items),
            progress=ExecutionProgress(total_steps=len(template.steps)),
        )
        self._recorder = ExecutionRecorder(self.execution, bus)
        self._repository = repository
        self._retry = retry_config or RetryConfig()
        self._resumed = asyncio.Event()
        self._resumed.set()
        self._cancel_requested = False
        self._started = False
        self._skipped: Set[str] = set()
        self._reached: Set[str] = set()

    @staticmethod
    def _resolve_options(
        template: WorkflowTemplate, overrides: StepOverrides
    ) -> Dict[str, StepOptions]:
        unknown = set(overrides) - {step.id for step in template.steps}
        if unknown:
            raise InvalidExecutionRequest(
                f"Options given for unknown steps of {template.id}: {sorted(unknown)}"
            )
        resolved: Dict[str, StepOptions] = {}
        for step in template.steps:
            try:
                resolved[step.id] = step.resolve_options(dict(overrides.get(step.id) or {}))
            except ValidationError as e:
                raise InvalidExecutionRequest(
                    f"Invalid options for step {step.id}: {e}"
                ) from e
        return resolved

    # ------------------------------------------------------------------
    @property
    def id(self) -> str:
        return self.execution.id

    @property
    def status(self) -> ExecutionStatus:
        return self.execution.status

    def snapshot(self) -> Execution:
        return self.execution.snapshot()

    # ------------------------------------------------------------------
    # Caller controls
    async def pause(self) -> bool:
        """Suspend the run at the next step boundary."""
        if self.execution.status != ExecutionStatus.RUNNING or self._cancel_requested:
            return False
        self._recorder.transition(ExecutionStatus.PAUSED)
        self._resumed.clear()
        self._recorder.log("info", "Workflow paused")
        await self._recorder.publish()
        return True

    async def resume(self) -> bool:
        """Continue a paused run from the step it stopped at."""
        if self.execution.status != ExecutionStatus.PAUSED or self._cancel_requested:
            return False
        self._recorder.transition(ExecutionStatus.RUNNING)
        self._resumed.set()
        self._recorder.log("info", "Workflow resumed")
        await self._recorder.publish()
        return True

    async def cancel(self) -> bool:
        """Request cancellation; no further step starts once it is observed."""
        if self._cancel_requested or self.execution.status not in (
            ExecutionStatus.PENDING,
            ExecutionStatus.RUNNING,
            ExecutionStatus.PAUSED,
        ):
            return False
        self._cancel_requested = True
        self._resumed.set()
        self._recorder.log("info", "Cancellation requested")
        await self._recorder.publish()
        return True

    async def skip(self, step_id: str) -> None:
        """Mark an optional step that has not started yet to be skipped."""
        step = self.template.get_step(step_id)
        if step is None:
            raise StepNotSkippable(f"Unknown step {step_id} in template {self.template.id}")
        if not step.can_skip:
            raise StepNotSkippable(f"Step {step_id} is not optional")
        if self.execution.is_terminal or step_id in self._reached:
            raise StepNotSkippable(f"Step {step_id} has already started")
        if step_id in self._skipped:
            return
        self._skipped.add(step_id)
        self._recorder.log("info", f"Step will be skipped: {step.name}", step_id)
        await self._recorder.publish()

    # ------------------------------------------------------------------
    async def run(self) -> Execution:
        """Run every step and return the terminal execution snapshot.

        Failures are captured in the execution's logs and results; nothing
        raised by a step reaches the caller.
        """
        if self._started:
            raise InvalidExecutionRequest(f"Execution {self.id} has already been started")
        self._started = True

        recorder = self._recorder
        execution = self.execution
        execution.start_time = datetime.now(timezone.utc)
        recorder.transition(ExecutionStatus.RUNNING)
        recorder.log(
            "info",
            f"Started workflow: {self.template.name} with {len(execution.items)} items",
        )
        await recorder.publish()

        try:
            await self._run_steps()
            if not execution.is_terminal:
                if self._cancel_requested:
                    self._mark_cancelled()
                else:
                    recorder.transition(ExecutionStatus.COMPLETED)
                    recorder.log("info", "Workflow completed successfully")
        except asyncio.CancelledError:
            if not execution.is_terminal:
                self._mark_cancelled()
            raise
        except Exception as e:
            logger.exception(f"Unexpected error while running execution {self.id}")
            if not execution.is_terminal:
                recorder.transition(ExecutionStatus.FAILED)
            recorder.log("error", f"Workflow failed: {e}")
        finally:
            execution.end_time = datetime.now(timezone.utc)
            self._resumed.set()
            await self._record_history()
            await recorder.publish()

        return execution.snapshot()

    async def _run_steps(self) -> None:
        recorder = self._recorder
        for index, step in enumerate(self.template.steps):
            if self._cancel_requested:
                self._mark_cancelled()
                return

            if not self._resumed.is_set():
                await self._resumed.wait()
                if self._cancel_requested:
                    self._mark_cancelled()
                    return

            self._reached.add(step.id)
            recorder.start_step(index)

            if step.id in self._skipped:
                recorder.log("info", f"Skipping step: {step.name}", step.id)
                recorder.complete_step(step.id, None)
                await recorder.publish()
                continue

            recorder.log("info", f"Starting step: {step.name}", step.id)
            await recorder.publish()

            try:
                outcome = await self._attempt(step)
            except Exception as e:
                recorder.log("error", f"Step failed: {step.name} - {e}", step.id)
                if not step.retryable:
                    recorder.transition(ExecutionStatus.FAILED)
                    return
                recorder.log(
                    "warning",
                    f"Continuing past retryable step: {step.name}",
                    step.id,
                )
            else:
                recorder.complete_step(step.id, outcome)
                if outcome.failed:
                    recorder.log(
                        "warning",
                        f"Step completed with {len(outcome.failed)} failures: {step.name}",
                        step.id,
                    )
                else:
                    recorder.log(
                        "info", f"Step completed successfully: {step.name}", step.id
                    )

            await recorder.publish()

    async def _attempt(self, step: WorkflowStep) -> StepOutcome:
        options = self._resolved[step.id]
        attempt = 1
        while True:
            try:
                return await run_step(step, self.execution.items, options)
            except StepValidationError:
                raise
            except Exception as e:
                if attempt >= step.max_attempts:
                    raise
                self._recorder.log(
                    "warning",
                    f"Attempt {attempt} of {step.max_attempts} failed for {step.name}: {e}",
                    step.id,
                )
                await retry.schedule_retry(
                    attempt, base=self._retry.base, jitter=self._retry.jitter
                )
                attempt += 1

    def _mark_cancelled(self) -> None:
        self._recorder.transition(ExecutionStatus.CANCELLED)
        self._recorder.log("info", "Workflow cancelled by user")

    async def _record_history(self) -> None:
        if self._repository is None or not self.execution.is_terminal:
            return
        try:
            await self._repository.append(self.execution)
        except Exception as e:
            logger.error(f"Failed to record execution {self.id} in history: {e}")
            self._recorder.log("error", f"Failed to record execution history: {e}")


class WorkflowEngine:
    """Entry point tying templates, history and snapshot delivery together."""

    def __init__(
        self,
        registry: Optional[TemplateRegistry] = None,
        repository: HistoryRepository | None = None,
        bus: Optional[SnapshotBus] = None,
        config: Optional[BulkflowConfig] = None,
    ) -> None:
        self.config = config or load_config()
        self.registry = registry if registry is not None else REGISTRY
        self.repository = (
            repository if repository is not None else get_repository(config=self.config)
        )
        self.bus = bus or SnapshotBus()
        self._controllers: Dict[str, ExecutionController] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    def create(
        self,
        template_id: str,
        items: Iterable[ItemId],
        options: Optional[StepOverrides] = None,
    ) -> ExecutionController:
        """Build a controller for a new execution without starting it."""
        template = self.registry.get(template_id)
        controller = ExecutionController(
            template,
            items,
            options=options,
            bus=self.bus,
            repository=self.repository,
            retry_config=self.config.retry,
        )
        self._controllers[controller.id] = controller
        return controller

    def start(
        self,
        template_id: str,
        items: Iterable[ItemId],
        options: Optional[StepOverrides] = None,
    ) -> ExecutionController:
        """Start an execution as a background task and return its controller."""
        controller = self.create(template_id, items, options)
        task = asyncio.create_task(controller.run(), name=controller.id)
        self._tasks[controller.id] = task
        task.add_done_callback(lambda _: self._forget(controller.id))
        logger.info(f"Started execution {controller.id} of template {template_id}")
        return controller

    async def run(
        self,
        template_id: str,
        items: Iterable[ItemId],
        options: Optional[StepOverrides] = None,
    ) -> Execution:
        """Run an execution to completion and return its terminal snapshot."""
        controller = self.create(template_id, items, options)
        try:
            return await controller.run()
        finally:
            self._forget(controller.id)

    async def wait(self, execution_id: str) -> Execution:
        """Wait for a started execution to terminate.

        Executions that already finished are answered from history.
        """
        task = self._tasks.get(execution_id)
        if task is not None:
            return await task
        execution = await self.repository.get_execution(execution_id)
        if execution is None:
            latest = self.bus.latest(execution_id)
            if latest is not None and latest.is_terminal:
                return latest
            raise InvalidExecutionRequest(f"No started execution {execution_id}")
        return execution

    def get(self, execution_id: str) -> Optional[ExecutionController]:
        """Return the controller of an active execution."""
        return self._controllers.get(execution_id)

    def active(self) -> List[ExecutionController]:
        return list(self._controllers.values())

    async def history(self, limit: Optional[int] = None) -> List[Execution]:
        return await self.repository.list_executions(limit)

    def _forget(self, execution_id: str) -> None:
        self._controllers.pop(execution_id, None)
        self._tasks.pop(execution_id, None)
