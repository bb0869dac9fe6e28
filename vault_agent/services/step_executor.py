"""Executes one planned step against the generative backend."""

import logging
from collections.abc import Callable
from datetime import datetime

from vault_agent.backends.base import GenerativeBackend, collect_response
from vault_agent.cancellation import AbortSignal, race_abort
from vault_agent.models.agent_task import AgentTask, StepStatus, TaskStatus
from vault_agent.models.chat import ChatMessage
from vault_agent.models.config import AgentModeConfig
from vault_agent.models.file_operation import FileOperationRequest, FileOperationStatus
from vault_agent.services.command_parser import (
    parse_file_operations,
    strip_file_operation_commands,
)
from vault_agent.services.file_operation_service import FileOperationService
from vault_agent.services.prompts import build_execution_prompt
from vault_agent.services.task_state_machine import TaskStateMachine, TransitionTrigger

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[AgentTask], None]


class StepExecutor:
    """Runs the step at a task's current index and writes the outcome back onto it.

    The executor never raises for a failing step: backend errors, timeouts and
    aborts are recorded on the step, and the task moves to paused or failed
    according to the pause-on-error setting.
    """

    def __init__(
        self,
        backend: GenerativeBackend,
        file_operations: FileOperationService,
        state_machine: TaskStateMachine,
        on_progress: ProgressCallback,
    ):
        self.backend = backend
        self.file_operations = file_operations
        self.state_machine = state_machine
        self.on_progress = on_progress

    async def execute_next_step(
        self,
        task: AgentTask,
        mode: AgentModeConfig,
        history: list[ChatMessage],
        signal: AbortSignal | None = None,
    ) -> bool:
        """Execute the step at task.current_step_index.

        Args:
            task: The live task, mutated in place.
            mode: Agent mode settings in effect for this step.
            history: Recent chat messages passed to the backend.
            signal: Task-level abort signal (pause/stop).

        Returns:
            True if more steps remain and the task is still running.
        """
        if not task.has_remaining_steps:
            if task.status == TaskStatus.RUNNING:
                self.state_machine.transition(
                    task, TaskStatus.COMPLETED, TransitionTrigger.STEPS_EXHAUSTED
                )
                self.on_progress(task)
            return False

        step = task.steps[task.current_step_index]
        if step.status != StepStatus.PENDING:
            logger.debug(f"Passing over step {task.current_step_index + 1} ({step.status.value})")
            task.current_step_index += 1
            return task.has_remaining_steps

        step.status = StepStatus.RUNNING
        step.started_at = datetime.now()
        self.on_progress(task)
        logger.info(f"Executing step {task.current_step_index + 1}/{len(task.steps)}: {step.description}")

        try:
            prompt = build_execution_prompt(task, mode.context_window_steps)
            logger.debug(f"Step prompt is {len(prompt)} chars")
            response = await race_abort(
                collect_response(self.backend, prompt, history, signal),
                signal,
                timeout=mode.step_timeout_seconds,
            )

            operations = parse_file_operations(response)
            step.file_operations = operations
            step.result = strip_file_operation_commands(response)

            if mode.auto_approve and operations:
                succeeded, failed = await self.apply_operations(operations)
                if failed:
                    step.status = StepStatus.FAILED
                    step.error = f"Partial failure: {succeeded} succeeded, {failed} failed"
                    step.completed_at = datetime.now()
                    task.current_step_index += 1
                    logger.warning(f"Step {task.current_step_index} {step.error}")
                    if mode.pause_on_error and task.status == TaskStatus.RUNNING:
                        self.state_machine.transition(
                            task, TaskStatus.PAUSED, TransitionTrigger.STEP_FAILED
                        )
                    self.on_progress(task)
                    return task.has_remaining_steps and task.status == TaskStatus.RUNNING

            step.status = StepStatus.COMPLETED
            step.completed_at = datetime.now()
            task.current_step_index += 1

            if not task.has_remaining_steps and task.status == TaskStatus.RUNNING:
                self.state_machine.transition(
                    task, TaskStatus.COMPLETED, TransitionTrigger.STEPS_EXHAUSTED
                )
                logger.info(f"Task {task.id} completed")

            self.on_progress(task)
            return task.has_remaining_steps and task.status == TaskStatus.RUNNING

        except Exception as e:
            step.status = StepStatus.FAILED
            step.error = str(e) or "Unknown error"
            step.completed_at = datetime.now()
            logger.warning(f"Step {task.current_step_index + 1} failed: {step.error}")

            # A concurrent stop may already have finalized the task
            if task.status == TaskStatus.RUNNING:
                target = TaskStatus.PAUSED if mode.pause_on_error else TaskStatus.FAILED
                self.state_machine.transition(task, target, TransitionTrigger.STEP_FAILED)

            self.on_progress(task)
            return False

    async def apply_operations(self, operations: list[FileOperationRequest]) -> tuple[int, int]:
        """Apply operations in order, recording each outcome on the operation.

        Returns:
            Tuple of (succeeded, failed) counts.
        """
        succeeded = failed = 0
        for operation in operations:
            try:
                await self.file_operations.execute(operation)
            except Exception as e:
                operation.status = FileOperationStatus.ERROR
                operation.error_message = str(e) or "Unknown error"
                failed += 1
                logger.warning(f"File operation on {operation.target_path} failed: {e}")
            else:
                operation.status = FileOperationStatus.APPROVED
                succeeded += 1
        return succeeded, failed
