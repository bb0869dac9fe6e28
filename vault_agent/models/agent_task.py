"""Agent task and step models with their status vocabularies.

A task owns an ordered list of steps. Tasks and steps share most status labels
but each has its own enum so that illegal combinations (a step in plan review,
a skipped task) cannot be represented.
"""

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from vault_agent.models.file_operation import FileOperationRequest


def generate_id() -> str:
    """Return a new opaque identifier."""
    return uuid.uuid4().hex


class TaskStatus(str, Enum):
    """Persisted lifecycle states of an AgentTask.

    State transitions:
    - PENDING → PLAN_REVIEW (planning succeeded)
    - PENDING → FAILED (planning raised)
    - PLAN_REVIEW → RUNNING (plan approved)
    - PLAN_REVIEW → FAILED (plan rejected)
    - RUNNING → COMPLETED / PAUSED / FAILED
    - PAUSED → RUNNING (resume or retry)
    - FAILED / COMPLETED → RUNNING (retry)
    """

    PENDING = "pending"
    """Created, planning in progress."""

    PLAN_REVIEW = "plan_review"
    """Plan ready, waiting for the user to approve or reject it."""

    RUNNING = "running"
    """Steps are being executed."""

    COMPLETED = "completed"
    """Every step finished or was skipped."""

    FAILED = "failed"
    """Planning failed, a step failed without pause-on-error, or the task was stopped."""

    PAUSED = "paused"
    """Execution halted and can be resumed."""


class StepStatus(str, Enum):
    """Lifecycle states of a single AgentStep."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"
    SKIPPED = "skipped"


class ServiceState(str, Enum):
    """Whether the orchestration loop is iterating. Never persisted."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSING = "pausing"
    STOPPED = "stopped"


class AgentStep(BaseModel):
    """One unit of plan execution."""

    id: str = Field(default_factory=generate_id)
    description: str = Field(..., description="Human-readable step produced by planning")
    file_operations: list[FileOperationRequest] = Field(
        default_factory=list,
        description="Operations parsed from this step's reply, empty until executed",
    )
    status: StepStatus = Field(default=StepStatus.PENDING)
    result: str | None = Field(
        default=None,
        description="Reply text with the command markup stripped",
    )
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def reset(self) -> None:
        """Return the step to a pristine pending state."""
        self.status = StepStatus.PENDING
        self.error = None
        self.result = None
        self.file_operations = []
        self.started_at = None
        self.completed_at = None


class AgentTask(BaseModel):
    """A unit of autonomous work toward a single user goal.

    Only one task is live inside an AgentService at a time. Others exist only
    as inert persisted snapshots inside chat sessions.
    """

    id: str = Field(default_factory=generate_id)
    goal: str = Field(..., description="The original user instruction")
    steps: list[AgentStep] = Field(default_factory=list)
    current_step_index: int = Field(
        default=0,
        ge=0,
        description="Index of the next step to execute",
    )
    status: TaskStatus = Field(default=TaskStatus.PENDING)
    created_at: datetime = Field(default_factory=datetime.now)
    completed_at: datetime | None = None

    @property
    def current_step(self) -> AgentStep | None:
        """The step at current_step_index, or None past the end."""
        if self.current_step_index < len(self.steps):
            return self.steps[self.current_step_index]
        return None

    @property
    def has_remaining_steps(self) -> bool:
        return self.current_step_index < len(self.steps)

    def get_step(self, index: int) -> AgentStep | None:
        """Return the step at index, or None when out of range."""
        if 0 <= index < len(self.steps):
            return self.steps[index]
        return None

    def snapshot(self) -> "AgentTask":
        """Deep copy for handing to persistence and event listeners."""
        return self.model_copy(deep=True)
