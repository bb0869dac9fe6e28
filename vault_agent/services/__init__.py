"""Services for the vault agent."""

from vault_agent.services.agent_runner import AgentRunner
from vault_agent.services.agent_service import AgentService
from vault_agent.services.command_parser import (
    parse_file_operations,
    strip_file_operation_commands,
)
from vault_agent.services.config_service import (
    ConfigService,
    get_config_service,
    reset_config_service,
)
from vault_agent.services.event_bus import Event, EventBus, get_event_bus, reset_event_bus
from vault_agent.services.file_operation_service import FileOperationService
from vault_agent.services.knowledge_service import KnowledgeService
from vault_agent.services.path_validator import validate_path
from vault_agent.services.session_store import SessionStore
from vault_agent.services.step_executor import StepExecutor
from vault_agent.services.step_planner import StepPlanner, parse_steps_from_plan
from vault_agent.services.task_state_machine import (
    InvalidTransitionError,
    TaskStateMachine,
    TransitionResult,
    TransitionTrigger,
)

__all__ = [
    "AgentRunner",
    "AgentService",
    "ConfigService",
    "Event",
    "EventBus",
    "FileOperationService",
    "InvalidTransitionError",
    "KnowledgeService",
    "SessionStore",
    "StepExecutor",
    "StepPlanner",
    "TaskStateMachine",
    "TransitionResult",
    "TransitionTrigger",
    "get_config_service",
    "get_event_bus",
    "parse_file_operations",
    "parse_steps_from_plan",
    "reset_config_service",
    "reset_event_bus",
    "strip_file_operation_commands",
    "validate_path",
]
