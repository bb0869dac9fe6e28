"""AgentService - owner of the live agent task and its control surface.

The service plans a goal into steps, waits for plan approval, then drives the
step loop. All methods must be called from the same asyncio event loop; the
synchronous ones never suspend, so they cannot interleave with a step halfway
through a mutation.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from vault_agent.backends.base import GenerativeBackend
from vault_agent.cancellation import AbortController
from vault_agent.exceptions import InvalidCallerUsageError, TaskNotFoundError
from vault_agent.models.agent_task import (
    AgentStep,
    AgentTask,
    ServiceState,
    StepStatus,
    TaskStatus,
)
from vault_agent.models.chat import ChatMessage
from vault_agent.models.config import AgentModeConfig
from vault_agent.models.file_operation import FileOperationRequest, FileOperationStatus
from vault_agent.services.file_operation_service import FileOperationService
from vault_agent.services.prompts import PLANNING_STEP_DESCRIPTION
from vault_agent.services.step_executor import ProgressCallback, StepExecutor
from vault_agent.services.step_planner import StepPlanner
from vault_agent.services.task_state_machine import TaskStateMachine, TransitionTrigger

logger = logging.getLogger(__name__)

INTERRUPTED_STEP_ERROR = "Interrupted by process restart"


class AgentService:
    """Plans and executes one AgentTask at a time.

    Progress is reported through ``on_progress`` after every mutation of the
    live task, which is where persistence hooks in. ``on_discard`` is called
    when the live task is dropped (plan rejected or task stopped).
    """

    def __init__(
        self,
        backend: GenerativeBackend,
        file_operations: FileOperationService,
        mode: AgentModeConfig | None = None,
        on_progress: ProgressCallback | None = None,
        on_discard: Callable[[AgentTask], None] | None = None,
    ):
        self.backend = backend
        self.file_operations = file_operations
        self.mode = mode or AgentModeConfig()
        self.on_progress = on_progress
        self.on_discard = on_discard

        self.state_machine = TaskStateMachine()
        self.planner = StepPlanner(backend)
        self.executor = StepExecutor(backend, file_operations, self.state_machine, self._emit)

        self._current_task: AgentTask | None = None
        self._state = ServiceState.IDLE
        self._history: list[ChatMessage] = []
        self._abort_controller: AbortController | None = None
        self._planning_controller: AbortController | None = None

    # =========================================================================
    # Queries
    # =========================================================================

    def get_current_task(self) -> AgentTask | None:
        return self._current_task

    @property
    def state(self) -> ServiceState:
        return self._state

    def is_task_running(self) -> bool:
        """Whether the step loop is active."""
        return self._state in (ServiceState.RUNNING, ServiceState.PAUSING)

    def update_mode(self, mode: AgentModeConfig) -> None:
        """Apply new agent mode settings to subsequent steps."""
        self.mode = mode

    # =========================================================================
    # Planning
    # =========================================================================

    async def start_task(
        self,
        goal: str,
        context: str | None = None,
        history: list[ChatMessage] | None = None,
    ) -> AgentTask:
        """Create a task for the goal and plan it.

        The task ends in PLAN_REVIEW on success or FAILED when planning raised.
        Execution does not start until approve_plan().

        Raises:
            InvalidCallerUsageError: If a task is being planned or executed.
        """
        if self._state != ServiceState.IDLE or (
            self._current_task is not None
            and self._current_task.status in (TaskStatus.PENDING, TaskStatus.RUNNING)
        ):
            raise InvalidCallerUsageError("A task is already in progress")

        limit = self.mode.history_limit
        self._history = list(history or [])[-limit:] if limit else []

        planning_step = AgentStep(
            description=PLANNING_STEP_DESCRIPTION,
            status=StepStatus.RUNNING,
            started_at=datetime.now(),
        )
        task = AgentTask(goal=goal, steps=[planning_step])
        self._current_task = task
        controller = AbortController()
        self._planning_controller = controller
        self._emit(task)
        logger.info(f"Planning task {task.id}: {goal[:60]}")

        try:
            steps, _ = await self.planner.plan(
                goal,
                self.mode.max_steps,
                context=context,
                history=self._history,
                signal=controller.signal,
            )
        except Exception as e:
            planning_step.status = StepStatus.FAILED
            planning_step.error = str(e) or "Unknown error"
            planning_step.completed_at = datetime.now()
            logger.warning(f"Planning failed for task {task.id}: {planning_step.error}")
            if task.status == TaskStatus.PENDING:
                self.state_machine.transition(
                    task, TaskStatus.FAILED, TransitionTrigger.PLANNING_FAILED
                )
            self._emit(task)
            return task
        finally:
            if self._planning_controller is controller:
                self._planning_controller = None

        # Stopped while the plan reply was already complete
        if task.status != TaskStatus.PENDING:
            return task

        task.steps = steps
        task.current_step_index = 0
        self.state_machine.transition(task, TaskStatus.PLAN_REVIEW, TransitionTrigger.PLAN_READY)
        self._emit(task)
        logger.info(f"Task {task.id} planned with {len(steps)} steps, awaiting review")
        return task

    async def approve_plan(self) -> AgentTask:
        """Approve the reviewed plan and run it.

        Raises:
            TaskNotFoundError: If there is no live task.
            InvalidCallerUsageError: If the task is not awaiting review.
        """
        task = self._require_task()
        if task.status != TaskStatus.PLAN_REVIEW:
            raise InvalidCallerUsageError(f"Task is {task.status.value}, not awaiting plan review")
        logger.info(f"Plan approved for task {task.id}")
        await self.run_to_completion(TransitionTrigger.PLAN_APPROVED)
        return task

    def reject_plan(self) -> AgentTask:
        """Reject the reviewed plan and discard the task."""
        task = self._require_task()
        if task.status != TaskStatus.PLAN_REVIEW:
            raise InvalidCallerUsageError(f"Task is {task.status.value}, not awaiting plan review")
        self.state_machine.transition(task, TaskStatus.FAILED, TransitionTrigger.PLAN_REJECTED)
        self._emit(task)
        self._discard(task)
        logger.info(f"Plan rejected, task {task.id} discarded")
        return task

    # =========================================================================
    # Step loop
    # =========================================================================

    async def run_to_completion(self, trigger: TransitionTrigger) -> None:
        """Execute steps until the task completes, pauses, fails or is stopped.

        This is the only loop that advances steps. Approve, resume and retry
        all enter it with the trigger that moves the task to RUNNING.

        Raises:
            TaskNotFoundError: If there is no live task.
            InvalidCallerUsageError: If the loop is already active.
            InvalidTransitionError: If the task cannot move to RUNNING.
        """
        task = self._require_task()
        if self._state != ServiceState.IDLE:
            raise InvalidCallerUsageError(f"Agent loop is {self._state.value}")

        self.state_machine.transition(task, TaskStatus.RUNNING, trigger)
        controller = AbortController()
        self._abort_controller = controller
        self._state = ServiceState.RUNNING
        self._emit(task)

        try:
            has_more = True
            while (
                has_more
                and self._state == ServiceState.RUNNING
                and task.status == TaskStatus.RUNNING
            ):
                has_more = await self.executor.execute_next_step(
                    task, self.mode, self._history, controller.signal
                )

                if (
                    task.status == TaskStatus.RUNNING
                    and task.has_remaining_steps
                    and task.current_step_index >= self.mode.max_steps
                ):
                    logger.warning(f"Task {task.id} reached the {self.mode.max_steps} step ceiling")
                    self.state_machine.transition(
                        task, TaskStatus.PAUSED, TransitionTrigger.STEP_LIMIT_REACHED
                    )
                    self._emit(task)

            if task.status == TaskStatus.RUNNING and not task.has_remaining_steps:
                self.state_machine.transition(
                    task, TaskStatus.COMPLETED, TransitionTrigger.STEPS_EXHAUSTED
                )
                self._emit(task)
        finally:
            if (
                self._state == ServiceState.PAUSING
                and task is self._current_task
                and task.status in (TaskStatus.RUNNING, TaskStatus.FAILED)
            ):
                self.state_machine.transition(
                    task, TaskStatus.PAUSED, TransitionTrigger.PAUSE_REQUESTED
                )
                self._emit(task)
                logger.info(f"Task {task.id} paused")
            if self._abort_controller is controller:
                self._abort_controller = None
                self._state = ServiceState.IDLE

    # =========================================================================
    # Control surface
    # =========================================================================

    def pause_task(self) -> None:
        """Request a pause. The in-flight step is aborted and the task is
        finalized to PAUSED once the loop yields.

        Raises:
            InvalidCallerUsageError: If the loop is not running, which includes
                a task that is still being planned.
        """
        if self._state != ServiceState.RUNNING or self._abort_controller is None:
            raise InvalidCallerUsageError("No running task to pause")
        self._state = ServiceState.PAUSING
        self._abort_controller.abort("Paused by user")
        logger.info("Pause requested")

    async def resume_task(self) -> AgentTask:
        """Resume a paused task from its current index."""
        task = self._require_task()
        if task.status != TaskStatus.PAUSED:
            raise InvalidCallerUsageError(f"Task is {task.status.value}, not paused")
        if self._state != ServiceState.IDLE:
            raise InvalidCallerUsageError(f"Agent loop is {self._state.value}")
        logger.info(f"Resuming task {task.id} at step {task.current_step_index + 1}")
        await self.run_to_completion(TransitionTrigger.RESUMED)
        return task

    def stop_task(self) -> AgentTask:
        """Abort any in-flight call, fail the task and discard it."""
        task = self._require_task()
        self._state = ServiceState.STOPPED
        for controller in (self._abort_controller, self._planning_controller):
            if controller is not None:
                controller.abort("Stopped by user")

        if task.status in (TaskStatus.FAILED, TaskStatus.COMPLETED):
            task.completed_at = task.completed_at or datetime.now()
        else:
            self.state_machine.transition(task, TaskStatus.FAILED, TransitionTrigger.STOPPED)

        self._emit(task)
        self._discard(task)
        self._abort_controller = None
        self._planning_controller = None
        self._state = ServiceState.IDLE
        logger.info(f"Task {task.id} stopped")
        return task

    async def retry_step(self, step_index: int) -> AgentTask:
        """Reset a failed or skipped step and run the task again from it."""
        task = self._require_task()
        if self._state != ServiceState.IDLE:
            raise InvalidCallerUsageError(f"Agent loop is {self._state.value}")
        step = self._require_step(task, step_index)
        if step.status not in (StepStatus.FAILED, StepStatus.SKIPPED):
            raise InvalidCallerUsageError(
                f"Step {step_index + 1} is {step.status.value}, only failed or skipped steps can be retried"
            )
        if task.status not in (TaskStatus.PAUSED, TaskStatus.FAILED, TaskStatus.COMPLETED):
            raise InvalidCallerUsageError(f"Cannot retry a step while the task is {task.status.value}")

        step.reset()
        task.current_step_index = step_index
        task.completed_at = None
        self._emit(task)
        logger.info(f"Retrying step {step_index + 1} of task {task.id}")
        await self.run_to_completion(TransitionTrigger.STEP_RETRIED)
        return task

    def skip_step(self, step_index: int) -> AgentTask:
        """Mark a step skipped without calling the backend.

        Completed and running steps are never touched. Skipping the step at the
        current index advances it; moving past the last step completes the task.
        """
        task = self._require_task()
        step = self._require_step(task, step_index)
        if step.status in (StepStatus.COMPLETED, StepStatus.RUNNING):
            raise InvalidCallerUsageError(f"Step {step_index + 1} is {step.status.value}")

        step.status = StepStatus.SKIPPED
        step.completed_at = datetime.now()
        if step_index == task.current_step_index:
            task.current_step_index += 1

        if not task.has_remaining_steps and task.status != TaskStatus.COMPLETED:
            self.state_machine.transition(task, TaskStatus.COMPLETED, TransitionTrigger.STEP_SKIPPED)
            logger.info(f"Task {task.id} completed by skipping its last step")

        self._emit(task)
        return task

    async def approve_operation(self, step_index: int, operation_index: int) -> FileOperationRequest:
        """Apply a pending file operation the user approved."""
        task = self._require_task()
        operation = self._require_pending_operation(task, step_index, operation_index)
        try:
            await self.file_operations.execute(operation)
        except Exception as e:
            operation.status = FileOperationStatus.ERROR
            operation.error_message = str(e) or "Unknown error"
            logger.warning(f"Approved operation on {operation.target_path} failed: {e}")
        else:
            operation.status = FileOperationStatus.APPROVED
        self._emit(task)
        return operation

    def reject_operation(self, step_index: int, operation_index: int) -> FileOperationRequest:
        """Mark a pending file operation rejected without applying it."""
        task = self._require_task()
        operation = self._require_pending_operation(task, step_index, operation_index)
        operation.status = FileOperationStatus.REJECTED
        self._emit(task)
        return operation

    def restore_task(self, task: AgentTask) -> AgentTask:
        """Adopt a persisted task after a restart.

        A task that was running when the process died is paused, and its
        running steps are failed; a task that was still planning has failed.

        Raises:
            InvalidCallerUsageError: If the service is busy.
        """
        if self._state != ServiceState.IDLE or (
            self._current_task is not None
            and self._current_task.status in (TaskStatus.PENDING, TaskStatus.RUNNING)
        ):
            raise InvalidCallerUsageError("Cannot restore a task while another is in progress")

        for step in task.steps:
            if step.status == StepStatus.RUNNING:
                step.status = StepStatus.FAILED
                step.error = INTERRUPTED_STEP_ERROR
                step.completed_at = step.completed_at or datetime.now()

        if task.status == TaskStatus.RUNNING:
            self.state_machine.transition(
                task, TaskStatus.PAUSED, TransitionTrigger.PROCESS_INTERRUPTED
            )
        elif task.status == TaskStatus.PENDING:
            self.state_machine.transition(
                task, TaskStatus.FAILED, TransitionTrigger.PROCESS_INTERRUPTED
            )

        self._current_task = task
        self._emit(task)
        logger.info(f"Restored task {task.id} as {task.status.value}")
        return task

    # =========================================================================
    # Internals
    # =========================================================================

    def _emit(self, task: AgentTask) -> None:
        if self.on_progress is not None and task is self._current_task:
            self.on_progress(task)

    def _discard(self, task: AgentTask) -> None:
        self._current_task = None
        if self.on_discard is not None:
            self.on_discard(task)

    def _require_task(self) -> AgentTask:
        if self._current_task is None:
            raise TaskNotFoundError("No active agent task")
        return self._current_task

    def _require_step(self, task: AgentTask, step_index: int) -> AgentStep:
        step = task.get_step(step_index)
        if step is None:
            raise InvalidCallerUsageError(f"No step at index {step_index}")
        return step

    def _require_pending_operation(
        self, task: AgentTask, step_index: int, operation_index: int
    ) -> FileOperationRequest:
        step = self._require_step(task, step_index)
        if not 0 <= operation_index < len(step.file_operations):
            raise InvalidCallerUsageError(
                f"No file operation at index {operation_index} in step {step_index + 1}"
            )
        operation = step.file_operations[operation_index]
        if operation.status != FileOperationStatus.PENDING:
            raise InvalidCallerUsageError(
                f"File operation is already {operation.status.value}"
            )
        return operation
