"""Chat session routes.

Provides REST API endpoints for the persisted chat sessions:
- List sessions
- Create a session
- Get one session with its messages and agent task snapshot
"""

from flask import Blueprint, current_app, jsonify, request

from vault_agent.models.chat import DEFAULT_SESSION_TITLE, ChatSession
from vault_agent.services.session_store import SessionStore

sessions_bp = Blueprint("sessions", __name__)


def _get_store() -> SessionStore:
    return current_app.extensions["session_store"]


def _summary(session: ChatSession) -> dict:
    return {
        "id": session.id,
        "title": session.title,
        "message_count": len(session.messages),
        "knowledge_files": session.knowledge_files,
        "agent_task_status": session.active_agent_task.status.value
        if session.active_agent_task
        else None,
        "created_at": session.created_at.isoformat(),
        "updated_at": session.updated_at.isoformat(),
    }


@sessions_bp.route("/sessions", methods=["GET"])
def list_sessions():
    """List chat sessions, most recently updated first.

    Returns:
        JSON object with session summaries and the active session id.
    """
    store = _get_store()
    return jsonify(
        {
            "sessions": [_summary(s) for s in store.list_sessions()],
            "active_session_id": store.active_session_id,
        }
    )


@sessions_bp.route("/sessions", methods=["POST"])
def create_session():
    """Create a session and make it active.

    Request body (optional):
        {"title": "Groceries"}
    """
    data = request.get_json(silent=True) or {}
    title = str(data.get("title") or DEFAULT_SESSION_TITLE).strip() or DEFAULT_SESSION_TITLE
    session = _get_store().create_session(title)
    return jsonify({"session": _summary(session)}), 201


@sessions_bp.route("/sessions/<session_id>", methods=["GET"])
def get_session(session_id: str):
    session = _get_store().get_session(session_id)
    if session is None:
        return jsonify({"error": "Session not found"}), 404
    return jsonify({"session": session.model_dump(mode="json")})
