"""Tests for SessionStore."""

import pytest

from vault_agent.models.agent_task import AgentStep, AgentTask, TaskStatus
from vault_agent.models.chat import ChatMessage, MessageRole
from vault_agent.services.session_store import SessionStore


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def store(data_dir):
    """Create a SessionStore with a temporary data directory."""
    return SessionStore(data_dir=data_dir)


def user(content: str) -> ChatMessage:
    return ChatMessage(role=MessageRole.USER, content=content)


class TestSessions:
    """Tests for creating, switching and deleting sessions."""

    def test_create_makes_session_active(self, store):
        session = store.create_session()

        assert session.title == "New Chat"
        assert store.active_session_id == session.id
        assert store.get_active_session() is session

    def test_get_active_session_creates_one(self, store):
        session = store.get_active_session()

        assert store.list_sessions() == [session]

    def test_switch_session(self, store):
        first = store.create_session()
        store.create_session()

        assert store.switch_session(first.id) is first
        assert store.active_session_id == first.id
        assert store.switch_session("missing") is None

    def test_delete_active_session_activates_most_recent(self, store):
        first = store.create_session()
        second = store.create_session()
        store.update_session_messages(first.id, [user("hello")])
        third = store.create_session()

        assert store.delete_session(third.id) is True

        assert store.active_session_id == first.id
        assert {s.id for s in store.list_sessions()} == {first.id, second.id}
        assert store.delete_session("missing") is False

    def test_clear(self, store, data_dir):
        store.create_session()

        store.clear()

        assert store.list_sessions() == []
        assert SessionStore(data_dir=data_dir).list_sessions() == []


class TestSessionContent:
    def test_title_from_first_user_message(self, store):
        session = store.create_session()
        long_message = "Plan a week of dinners that use up the vegetables in the fridge"

        store.update_session_messages(
            session.id,
            [ChatMessage(role=MessageRole.ASSISTANT, content="Hi!"), user(long_message)],
        )

        assert session.title == long_message[:50]

    def test_custom_title_kept(self, store):
        session = store.create_session("Groceries")

        store.update_session_messages(session.id, [user("something else")])

        assert session.title == "Groceries"

    def test_knowledge_files_deduplicated(self, store):
        session = store.create_session()

        store.update_session_knowledge_files(session.id, ["a.md", "b.md", "a.md"])

        assert session.knowledge_files == ["a.md", "b.md"]

    def test_agent_task_snapshot(self, store):
        session = store.create_session()
        task = AgentTask(goal="g", steps=[AgentStep(description="Write it")])

        store.update_session_agent_task(task)
        task.status = TaskStatus.RUNNING

        assert session.active_agent_task.status == TaskStatus.PENDING

        store.update_session_agent_task(None)
        assert session.active_agent_task is None


class TestPersistence:
    """Tests for saving to and loading from sessions.yaml."""

    def test_round_trip(self, store, data_dir):
        session = store.create_session()
        store.update_session_messages(session.id, [user("Make a list")])
        task = AgentTask(
            goal="Make a list",
            steps=[AgentStep(description="Create file")],
            status=TaskStatus.PAUSED,
        )
        store.update_session_agent_task(task, session.id)

        reloaded = SessionStore(data_dir=data_dir)

        restored = reloaded.get_session(session.id)
        assert reloaded.active_session_id == session.id
        assert restored.title == "Make a list"
        assert restored.messages[0].content == "Make a list"
        assert restored.active_agent_task == task

    def test_corrupt_file_starts_empty(self, data_dir, caplog):
        data_dir.mkdir(parents=True)
        (data_dir / "sessions.yaml").write_text("sessions: [{id: 1, messages: nope}]")

        store = SessionStore(data_dir=data_dir)

        assert store.list_sessions() == []
        assert "starting empty" in caplog.text
