"""Agent task routes.

Provides the JSON control surface for the live agent task:
- Start a task and review its plan
- Pause, resume and stop execution
- Retry or skip individual steps
- Approve or reject pending file operations

Calls that run steps (start, approve, resume, retry) are scheduled on the
agent runner and answered with 202; progress arrives over /api/events.
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError

from vault_agent.exceptions import InvalidCallerUsageError, TaskNotFoundError
from vault_agent.models.agent_task import AgentTask
from vault_agent.models.chat import ChatMessage, MessageRole
from vault_agent.services.agent_runner import AgentRunner
from vault_agent.services.agent_service import AgentService
from vault_agent.services.knowledge_service import KnowledgeService
from vault_agent.services.session_store import SessionStore
from vault_agent.services.task_state_machine import InvalidTransitionError

logger = logging.getLogger(__name__)

agent_bp = Blueprint("agent", __name__)


def _get_service() -> AgentService:
    return current_app.extensions["agent_service"]


def _get_runner() -> AgentRunner:
    return current_app.extensions["agent_runner"]


def _serialize(task: AgentTask | None) -> dict | None:
    return task.model_dump(mode="json") if task is not None else None


def _task_response(task: AgentTask | None, status_code: int = 200):
    return jsonify({"task": _serialize(task)}), status_code


@agent_bp.errorhandler(TaskNotFoundError)
def handle_task_not_found(error: TaskNotFoundError):
    return jsonify({"error": str(error)}), 404


@agent_bp.errorhandler(InvalidCallerUsageError)
@agent_bp.errorhandler(InvalidTransitionError)
def handle_invalid_usage(error: Exception):
    logger.info(f"[API] Rejected agent call: {error}")
    return jsonify({"error": str(error)}), 409


@agent_bp.route("/agent/task", methods=["GET"])
def get_task():
    """Get the live agent task.

    Returns:
        JSON object {"task": <task or null>, "running": <bool>}.
    """
    service = _get_service()
    task, running = _get_runner().call(
        lambda: (
            service.get_current_task().snapshot() if service.get_current_task() else None,
            service.is_task_running(),
        )
    )
    return jsonify({"task": _serialize(task), "running": running})


@agent_bp.route("/agent/tasks", methods=["POST"])
def start_task():
    """Start planning a new task.

    Request body:
        {
            "goal": "Create a shopping list",
            "context": "optional extra context",
            "knowledge_files": ["Notes/recipes.md"],   // defaults to the session's
            "history": [{"role": "user", "content": "..."}]  // defaults to the session's
        }

    Returns:
        202 once planning has been scheduled.
    """
    config = current_app.extensions["config"]
    if not config.agent_mode.enabled:
        return jsonify({"error": "Agent mode is disabled"}), 409

    data = request.get_json(silent=True) or {}
    goal = str(data.get("goal") or "").strip()
    if not goal:
        return jsonify({"error": "No goal provided"}), 400

    store: SessionStore = current_app.extensions["session_store"]
    knowledge: KnowledgeService = current_app.extensions["knowledge_service"]
    session = store.get_active_session()

    try:
        history = (
            [ChatMessage.model_validate(m) for m in data["history"]]
            if "history" in data
            else list(session.messages)
        )
    except (ValidationError, TypeError) as e:
        return jsonify({"error": f"Invalid history: {e}"}), 400

    knowledge_files = data.get("knowledge_files", session.knowledge_files)
    if not isinstance(knowledge_files, list):
        return jsonify({"error": "knowledge_files must be a list"}), 400

    context_parts = [
        part
        for part in (data.get("context"), knowledge.build_context(knowledge_files))
        if part
    ]
    context = "\n\n".join(context_parts) or None

    service = _get_service()
    _get_runner().launch(service.start_task(goal, context=context, history=history))

    store.update_session_messages(
        session.id, [*session.messages, ChatMessage(role=MessageRole.USER, content=goal)]
    )
    logger.info(f"[API] Planning started for goal: {goal[:60]}")
    return jsonify({"status": "planning"}), 202


@agent_bp.route("/agent/task/approve", methods=["POST"])
def approve_plan():
    _get_runner().launch(_get_service().approve_plan())
    return jsonify({"status": "running"}), 202


@agent_bp.route("/agent/task/reject", methods=["POST"])
def reject_plan():
    service = _get_service()
    return _task_response(_get_runner().call(service.reject_plan))


@agent_bp.route("/agent/task/pause", methods=["POST"])
def pause_task():
    _get_runner().call(_get_service().pause_task)
    return jsonify({"status": "pausing"})


@agent_bp.route("/agent/task/resume", methods=["POST"])
def resume_task():
    _get_runner().launch(_get_service().resume_task())
    return jsonify({"status": "running"}), 202


@agent_bp.route("/agent/task/stop", methods=["POST"])
def stop_task():
    service = _get_service()
    return _task_response(_get_runner().call(service.stop_task))


@agent_bp.route("/agent/task/steps/<int:step_index>/retry", methods=["POST"])
def retry_step(step_index: int):
    _get_runner().launch(_get_service().retry_step(step_index))
    return jsonify({"status": "running", "step_index": step_index}), 202


@agent_bp.route("/agent/task/steps/<int:step_index>/skip", methods=["POST"])
def skip_step(step_index: int):
    service = _get_service()
    task = _get_runner().call(lambda: service.skip_step(step_index).snapshot())
    return _task_response(task)


@agent_bp.route(
    "/agent/task/steps/<int:step_index>/operations/<int:operation_index>/approve",
    methods=["POST"],
)
def approve_operation(step_index: int, operation_index: int):
    """Apply a pending file operation.

    Returns:
        JSON object with the operation; its status is "approved" or "error".
    """
    service = _get_service()
    operation = _get_runner().run(service.approve_operation(step_index, operation_index))
    return jsonify({"operation": operation.model_dump(mode="json")})


@agent_bp.route(
    "/agent/task/steps/<int:step_index>/operations/<int:operation_index>/reject",
    methods=["POST"],
)
def reject_operation(step_index: int, operation_index: int):
    service = _get_service()
    operation = _get_runner().call(service.reject_operation, step_index, operation_index)
    return jsonify({"operation": operation.model_dump(mode="json")})
