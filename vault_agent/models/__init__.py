"""Domain models for the vault agent."""

from vault_agent.models.agent_task import (
    AgentStep,
    AgentTask,
    ServiceState,
    StepStatus,
    TaskStatus,
    generate_id,
)
from vault_agent.models.chat import ChatMessage, ChatSession, MessageRole
from vault_agent.models.config import AgentModeConfig, AppConfig, BackendConfig
from vault_agent.models.file_operation import (
    FileOperationRequest,
    FileOperationStatus,
    FileOperationType,
)

__all__ = [
    # Agent task
    "AgentStep",
    "AgentTask",
    "ServiceState",
    "StepStatus",
    "TaskStatus",
    "generate_id",
    # File operations
    "FileOperationRequest",
    "FileOperationStatus",
    "FileOperationType",
    # Chat
    "ChatMessage",
    "ChatSession",
    "MessageRole",
    # Config
    "AgentModeConfig",
    "AppConfig",
    "BackendConfig",
]
