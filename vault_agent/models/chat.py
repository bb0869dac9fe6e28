"""Chat session models.

A chat session is the persistence unit: it carries the conversation that feeds
planning history and the snapshot of the session's active agent task.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from vault_agent.models.agent_task import AgentTask, generate_id

DEFAULT_SESSION_TITLE = "New Chat"


class MessageRole(str, Enum):
    """Author of a chat message."""

    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """A single message in a chat session."""

    id: str = Field(default_factory=generate_id)
    role: MessageRole = Field(..., description="Who wrote the message")
    content: str = Field(..., description="Message text")
    timestamp: datetime = Field(default_factory=datetime.now)


class ChatSession(BaseModel):
    """A conversation with its knowledge files and active agent task."""

    id: str = Field(default_factory=generate_id)
    title: str = Field(default=DEFAULT_SESSION_TITLE)
    messages: list[ChatMessage] = Field(default_factory=list)
    knowledge_files: list[str] = Field(
        default_factory=list,
        description="Vault paths attached as reference context",
    )
    active_agent_task: AgentTask | None = Field(
        default=None,
        description="Snapshot of the agent task owned by this session",
    )
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    def touch(self) -> None:
        """Bump updated_at to now."""
        self.updated_at = datetime.now()
