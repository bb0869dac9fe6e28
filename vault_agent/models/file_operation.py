"""File operation request model parsed from backend replies."""

from enum import Enum

from pydantic import BaseModel, Field


class FileOperationType(str, Enum):
    """Kind of mutation a command block requests."""

    CREATE = "create"
    """Create a new file. Fails if the target already exists."""

    EDIT = "edit"
    """Replace the full content of an existing file."""

    APPEND = "append"
    """Append content to an existing file, separated by one newline."""


class FileOperationStatus(str, Enum):
    """Lifecycle of a single requested mutation."""

    PENDING = "pending"
    """Parsed but not yet applied or decided."""

    APPROVED = "approved"
    """Applied to the file store successfully."""

    REJECTED = "rejected"
    """Declined by the user, never applied."""

    ERROR = "error"
    """The file store raised while applying it."""


class FileOperationRequest(BaseModel):
    """One file mutation extracted from a generative backend reply."""

    type: FileOperationType = Field(..., description="create, edit or append")
    target_path: str = Field(..., description="Vault-relative path, already validated")
    content: str = Field(..., description="Replacement or appended text")
    reason: str = Field(default="", description="Optional explanation from the model")
    status: FileOperationStatus = Field(default=FileOperationStatus.PENDING)
    error_message: str | None = Field(
        default=None,
        description="File store error when status is ERROR",
    )
