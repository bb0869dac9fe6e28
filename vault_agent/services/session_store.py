"""SessionStore - persisted chat sessions and their agent task snapshots.

State lives in ``<data_dir>/sessions.yaml`` and is rewritten after every
mutation. Both the HTTP threads and the agent loop thread write here, so all
access goes through one lock.
"""

import logging
import threading
from pathlib import Path

import yaml
from pydantic import ValidationError

from vault_agent.models.agent_task import AgentTask
from vault_agent.models.chat import (
    DEFAULT_SESSION_TITLE,
    ChatMessage,
    ChatSession,
    MessageRole,
)

logger = logging.getLogger(__name__)

TITLE_LENGTH = 50


class SessionStore:
    """Store for chat sessions with a single active session."""

    def __init__(self, data_dir: str | Path = "data"):
        """Initialize the store.

        Args:
            data_dir: Directory for persisting sessions.
        """
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self._sessions: dict[str, ChatSession] = {}
        self._active_session_id: str | None = None
        self._lock = threading.Lock()

        self._load_state()

    # =========================================================================
    # Sessions
    # =========================================================================

    def create_session(self, title: str = DEFAULT_SESSION_TITLE) -> ChatSession:
        """Create a session and make it active."""
        session = ChatSession(title=title)
        with self._lock:
            self._sessions[session.id] = session
            self._active_session_id = session.id
            self._save_state()
        logger.info(f"Created chat session {session.id}")
        return session

    def get_session(self, session_id: str) -> ChatSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def get_active_session(self) -> ChatSession:
        """Get the active session, creating one if there is none."""
        with self._lock:
            session = self._sessions.get(self._active_session_id or "")
        return session if session is not None else self.create_session()

    def switch_session(self, session_id: str) -> ChatSession | None:
        """Make another session active.

        Returns:
            The session, or None if it does not exist.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            self._active_session_id = session_id
            self._save_state()
        return session

    def delete_session(self, session_id: str) -> bool:
        """Delete a session. Deleting the active one activates the most recent remaining."""
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                return False
            if self._active_session_id == session_id:
                remaining = sorted(
                    self._sessions.values(), key=lambda s: s.updated_at, reverse=True
                )
                self._active_session_id = remaining[0].id if remaining else None
            self._save_state()
        return True

    def list_sessions(self) -> list[ChatSession]:
        """List sessions, most recently updated first."""
        with self._lock:
            return sorted(self._sessions.values(), key=lambda s: s.updated_at, reverse=True)

    @property
    def active_session_id(self) -> str | None:
        return self._active_session_id

    # =========================================================================
    # Session content
    # =========================================================================

    def update_session_messages(
        self, session_id: str, messages: list[ChatMessage]
    ) -> ChatSession | None:
        """Replace a session's messages.

        A session still carrying the default title is named after its first
        user message.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            session.messages = list(messages)
            if session.title == DEFAULT_SESSION_TITLE:
                first_user = next((m for m in messages if m.role == MessageRole.USER), None)
                if first_user is not None and first_user.content.strip():
                    session.title = first_user.content.strip()[:TITLE_LENGTH]
            session.touch()
            self._save_state()
        return session

    def update_session_knowledge_files(
        self, session_id: str, paths: list[str]
    ) -> ChatSession | None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            session.knowledge_files = list(dict.fromkeys(paths))
            session.touch()
            self._save_state()
        return session

    def update_session_agent_task(
        self, task: AgentTask | None, session_id: str | None = None
    ) -> ChatSession | None:
        """Store a task snapshot on a session (the active one by default).

        Passing None clears the session's task.
        """
        with self._lock:
            session = self._sessions.get(session_id or self._active_session_id or "")
            if session is None:
                return None
            session.active_agent_task = task.snapshot() if task is not None else None
            session.touch()
            self._save_state()
        return session

    def clear(self) -> None:
        """Remove every session."""
        with self._lock:
            self._sessions.clear()
            self._active_session_id = None
            self._save_state()

    # =========================================================================
    # Persistence
    # =========================================================================

    def _get_state_file(self) -> Path:
        return self.data_dir / "sessions.yaml"

    def _save_state(self) -> None:
        """Save state to disk. Caller holds the lock."""
        state = {
            "active_session_id": self._active_session_id,
            "sessions": [s.model_dump(mode="json") for s in self._sessions.values()],
        }

        state_file = self._get_state_file()
        try:
            with open(state_file, "w") as f:
                yaml.dump(state, f, default_flow_style=False, sort_keys=False)
            logger.debug(f"Saved {len(self._sessions)} sessions")
        except OSError as e:
            logger.error(f"Failed to save sessions to {state_file}: {e}")

    def _load_state(self) -> None:
        """Load state from disk. A corrupt file leaves the store empty."""
        state_file = self._get_state_file()
        if not state_file.exists():
            return

        try:
            with open(state_file) as f:
                state = yaml.safe_load(f)

            if not state:
                return

            sessions = [ChatSession.model_validate(s) for s in state.get("sessions", [])]
        except (OSError, yaml.YAMLError, ValidationError, AttributeError, TypeError) as e:
            logger.warning(f"Could not load sessions from {state_file}, starting empty: {e}")
            return

        self._sessions = {s.id: s for s in sessions}
        active_id = state.get("active_session_id")
        self._active_session_id = active_id if active_id in self._sessions else None
        logger.info(f"Loaded {len(self._sessions)} chat sessions")
