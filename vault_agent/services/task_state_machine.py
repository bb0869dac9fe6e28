"""Task State Machine for agent task status transitions.

Every change of ``AgentTask.status`` goes through ``TaskStateMachine.transition``
so that illegal moves fail loudly instead of corrupting a persisted task.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from vault_agent.exceptions import AgentError
from vault_agent.models.agent_task import AgentTask, TaskStatus


class TransitionTrigger(str, Enum):
    """Triggers that cause task status transitions."""

    PLAN_READY = "plan_ready"
    """Planning produced a step list (PENDING → PLAN_REVIEW)."""

    PLANNING_FAILED = "planning_failed"
    """The planning call raised (PENDING → FAILED)."""

    PLAN_APPROVED = "plan_approved"
    """User approved the plan (PLAN_REVIEW → RUNNING)."""

    PLAN_REJECTED = "plan_rejected"
    """User rejected the plan (PLAN_REVIEW → FAILED)."""

    STEPS_EXHAUSTED = "steps_exhausted"
    """The last step was executed (RUNNING → COMPLETED)."""

    STEP_FAILED = "step_failed"
    """A step failed (RUNNING → PAUSED or FAILED, depending on pause-on-error)."""

    STEP_LIMIT_REACHED = "step_limit_reached"
    """Runaway protection hit max_steps (RUNNING → PAUSED)."""

    PAUSE_REQUESTED = "pause_requested"
    """The loop yielded after a pause request (RUNNING or FAILED → PAUSED)."""

    RESUMED = "resumed"
    """User resumed a paused task (PAUSED → RUNNING)."""

    STEP_RETRIED = "step_retried"
    """User retried a failed or skipped step (PAUSED/FAILED/COMPLETED → RUNNING)."""

    STEP_SKIPPED = "step_skipped"
    """Skipping moved the index past the last step (→ COMPLETED)."""

    STOPPED = "stopped"
    """User stopped the task (any active status → FAILED)."""

    PROCESS_INTERRUPTED = "process_interrupted"
    """A stored task was restored after a restart (RUNNING → PAUSED, PENDING → FAILED)."""


@dataclass
class TransitionResult:
    """Result of a status transition."""

    success: bool
    from_status: TaskStatus
    to_status: TaskStatus
    trigger: TransitionTrigger
    timestamp: datetime


class InvalidTransitionError(AgentError):
    """Raised when an invalid status transition is attempted."""

    def __init__(self, from_status: TaskStatus, to_status: TaskStatus, trigger: TransitionTrigger):
        self.from_status = from_status
        self.to_status = to_status
        self.trigger = trigger
        super().__init__(
            f"Invalid transition: {from_status.value} → {to_status.value} "
            f"(trigger: {trigger.value})"
        )


# Valid transitions: (from_status, to_status) → allowed triggers
VALID_TRANSITIONS: dict[tuple[TaskStatus, TaskStatus], frozenset[TransitionTrigger]] = {
    (TaskStatus.PENDING, TaskStatus.PLAN_REVIEW): frozenset({TransitionTrigger.PLAN_READY}),
    (TaskStatus.PENDING, TaskStatus.FAILED): frozenset(
        {
            TransitionTrigger.PLANNING_FAILED,
            TransitionTrigger.STOPPED,
            TransitionTrigger.PROCESS_INTERRUPTED,
        }
    ),
    (TaskStatus.PLAN_REVIEW, TaskStatus.RUNNING): frozenset({TransitionTrigger.PLAN_APPROVED}),
    (TaskStatus.PLAN_REVIEW, TaskStatus.FAILED): frozenset(
        {TransitionTrigger.PLAN_REJECTED, TransitionTrigger.STOPPED}
    ),
    (TaskStatus.PLAN_REVIEW, TaskStatus.COMPLETED): frozenset({TransitionTrigger.STEP_SKIPPED}),
    (TaskStatus.RUNNING, TaskStatus.COMPLETED): frozenset(
        {TransitionTrigger.STEPS_EXHAUSTED, TransitionTrigger.STEP_SKIPPED}
    ),
    (TaskStatus.RUNNING, TaskStatus.PAUSED): frozenset(
        {
            TransitionTrigger.STEP_FAILED,
            TransitionTrigger.STEP_LIMIT_REACHED,
            TransitionTrigger.PAUSE_REQUESTED,
            TransitionTrigger.PROCESS_INTERRUPTED,
        }
    ),
    (TaskStatus.RUNNING, TaskStatus.FAILED): frozenset(
        {TransitionTrigger.STEP_FAILED, TransitionTrigger.STOPPED}
    ),
    (TaskStatus.PAUSED, TaskStatus.RUNNING): frozenset(
        {TransitionTrigger.RESUMED, TransitionTrigger.STEP_RETRIED}
    ),
    (TaskStatus.PAUSED, TaskStatus.COMPLETED): frozenset({TransitionTrigger.STEP_SKIPPED}),
    (TaskStatus.PAUSED, TaskStatus.FAILED): frozenset({TransitionTrigger.STOPPED}),
    (TaskStatus.FAILED, TaskStatus.RUNNING): frozenset({TransitionTrigger.STEP_RETRIED}),
    (TaskStatus.FAILED, TaskStatus.PAUSED): frozenset({TransitionTrigger.PAUSE_REQUESTED}),
    (TaskStatus.FAILED, TaskStatus.COMPLETED): frozenset({TransitionTrigger.STEP_SKIPPED}),
    (TaskStatus.COMPLETED, TaskStatus.RUNNING): frozenset({TransitionTrigger.STEP_RETRIED}),
}

# Triggers that end the task's life and stamp completed_at
_FINISHING_TRIGGERS = frozenset({TransitionTrigger.STOPPED, TransitionTrigger.PLAN_REJECTED})


class TaskStateMachine:
    """Validates and applies AgentTask status transitions.

    ```
    PENDING → PLAN_REVIEW → RUNNING → COMPLETED
                          ↘ FAILED   ↕ PAUSED
    ```
    """

    def can_transition(self, task: AgentTask, to_status: TaskStatus) -> bool:
        """Check if any trigger allows moving the task to to_status."""
        return (task.status, to_status) in VALID_TRANSITIONS

    def get_valid_transitions(self, task: AgentTask) -> list[TaskStatus]:
        """Get all valid target statuses from the task's current status."""
        return [to for (frm, to) in VALID_TRANSITIONS if frm == task.status]

    def transition(
        self, task: AgentTask, to_status: TaskStatus, trigger: TransitionTrigger
    ) -> TransitionResult:
        """Move a task to a new status.

        Args:
            task: The task to transition.
            to_status: The target status.
            trigger: The reason for the transition.

        Returns:
            TransitionResult with metadata.

        Raises:
            InvalidTransitionError: If the transition or trigger is not allowed.
        """
        from_status = task.status
        now = datetime.now()

        allowed = VALID_TRANSITIONS.get((from_status, to_status))
        if allowed is None or trigger not in allowed:
            raise InvalidTransitionError(from_status, to_status, trigger)

        task.status = to_status

        if to_status == TaskStatus.COMPLETED or trigger in _FINISHING_TRIGGERS:
            task.completed_at = now

        return TransitionResult(
            success=True,
            from_status=from_status,
            to_status=to_status,
            trigger=trigger,
            timestamp=now,
        )
