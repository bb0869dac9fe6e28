"""Exception hierarchy for the vault agent."""


class AgentError(Exception):
    """Base class for all vault agent errors."""


class InvalidCallerUsageError(AgentError):
    """Raised when the control surface is used in a state that forbids the call.

    Examples: starting a task while another is running, resuming a task that
    is not paused, deciding an operation that is no longer pending.
    """


class StepAbortedError(AgentError):
    """Raised when a pause or stop request aborts an in-flight step."""


class StepTimeoutError(AgentError):
    """Raised when a step's backend call exceeds the per-step timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Step timed out after {timeout:g}s")


class BackendError(AgentError):
    """Raised when the generative backend cannot produce a reply."""


class FileOperationError(AgentError):
    """Raised by the file store when an operation cannot be applied."""


class TaskNotFoundError(InvalidCallerUsageError):
    """Raised when a control call needs a live task and there is none."""
