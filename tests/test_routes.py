"""Tests for the Flask routes, wired through create_app."""

import pytest
import yaml
from fakes import InlineRunner, ScriptedBackend

from vault_agent.app import create_app
from vault_agent.models.agent_task import AgentStep, AgentTask, StepStatus, TaskStatus
from vault_agent.services.config_service import reset_config_service
from vault_agent.services.event_bus import AGENT_TASK_DISCARDED, AGENT_TASK_UPDATED
from vault_agent.services.session_store import SessionStore

TWO_STEP_PLAN = "1. Create the shopping list\n2. Confirm the list\n"


@pytest.fixture
def backend():
    return ScriptedBackend()


@pytest.fixture
def make_app(tmp_path, vault, backend, monkeypatch):
    """Build an app around a temporary config, data dir and vault."""
    monkeypatch.chdir(tmp_path)

    def factory(**agent_mode):
        reset_config_service()
        config_path = tmp_path / "config.yaml"
        config_path.write_text(
            yaml.dump(
                {
                    "vault_path": str(vault),
                    "data_dir": str(tmp_path / "data"),
                    "agent_mode": {"enabled": True, **agent_mode},
                }
            )
        )
        app = create_app(config_path=str(config_path), backend=backend, runner=InlineRunner())
        app.config["TESTING"] = True
        return app

    yield factory
    reset_config_service()


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    """Create a test client."""
    return app.test_client()


def start_planned_task(client, backend, plan=TWO_STEP_PLAN, goal="Make a shopping list"):
    backend.replies.append(plan)
    return client.post("/api/agent/tasks", json={"goal": goal})


class TestAgentTaskRoutes:
    """Tests for starting and reviewing tasks."""

    def test_no_task(self, client):
        response = client.get("/api/agent/task")

        assert response.status_code == 200
        assert response.get_json() == {"task": None, "running": False}

    def test_start_requires_goal(self, client):
        response = client.post("/api/agent/tasks", json={"goal": "   "})

        assert response.status_code == 400
        assert response.get_json()["error"] == "No goal provided"

    def test_start_rejects_bad_history(self, client):
        response = client.post(
            "/api/agent/tasks", json={"goal": "Tidy up", "history": [{"role": "robot"}]}
        )

        assert response.status_code == 400

    def test_start_rejected_when_agent_mode_disabled(self, make_app):
        client = make_app(enabled=False).test_client()

        response = client.post("/api/agent/tasks", json={"goal": "Tidy up"})

        assert response.status_code == 409

    def test_start_plans_task(self, app, client, backend):
        response = start_planned_task(client, backend)

        assert response.status_code == 202
        assert response.get_json() == {"status": "planning"}

        task = client.get("/api/agent/task").get_json()["task"]
        assert task["status"] == "plan_review"
        assert [s["description"] for s in task["steps"]] == [
            "Create the shopping list",
            "Confirm the list",
        ]

        session = app.extensions["session_store"].get_active_session()
        assert session.title == "Make a shopping list"
        assert session.active_agent_task.status == TaskStatus.PLAN_REVIEW

    def test_knowledge_files_become_context(self, client, backend, vault):
        (vault / "recipes.md").write_text("Pancakes need flour.")

        backend.replies.append(TWO_STEP_PLAN)
        client.post(
            "/api/agent/tasks",
            json={"goal": "Make a shopping list", "knowledge_files": ["recipes.md"]},
        )

        assert "Pancakes need flour." in backend.prompts[0]

    def test_approve_runs_plan(self, app, client, backend, vault):
        start_planned_task(client, backend)
        backend.replies.extend(
            ["[CREATE_FILE:list.md]\n- flour\n[/FILE]\nCreated the list.", "Looks good."]
        )

        response = client.post("/api/agent/task/approve")

        assert response.status_code == 202
        task = client.get("/api/agent/task").get_json()["task"]
        assert task["status"] == "completed"
        assert task["steps"][0]["result"] == "Created the list."
        assert (vault / "list.md").read_text() == "- flour"

        updates = app.extensions["event_bus"].get_buffered_events(AGENT_TASK_UPDATED)
        assert updates[-1].data["task"]["status"] == "completed"

    def test_reject_discards_task(self, app, client, backend):
        start_planned_task(client, backend)

        response = client.post("/api/agent/task/reject")

        assert response.status_code == 200
        assert response.get_json()["task"]["status"] == "failed"
        assert client.get("/api/agent/task").get_json()["task"] is None
        assert app.extensions["session_store"].get_active_session().active_agent_task is None
        assert app.extensions["event_bus"].get_buffered_events(AGENT_TASK_DISCARDED)


class TestAgentControlRoutes:
    """Tests for pause, stop and step control."""

    def test_pause_without_running_task(self, client):
        assert client.post("/api/agent/task/pause").status_code == 409

    def test_stop_without_task(self, client):
        response = client.post("/api/agent/task/stop")

        assert response.status_code == 404
        assert response.get_json()["error"] == "No active agent task"

    def test_stop_planned_task(self, client, backend):
        start_planned_task(client, backend)

        response = client.post("/api/agent/task/stop")

        assert response.get_json()["task"]["status"] == "failed"
        assert client.get("/api/agent/task").get_json()["task"] is None

    def test_approve_twice_conflicts(self, client, backend):
        start_planned_task(client, backend, plan="1. Write the summary\n")
        backend.replies.append("Summary written.")
        client.post("/api/agent/task/approve")

        assert client.post("/api/agent/task/approve").status_code == 409

    def test_skip_step(self, client, backend):
        start_planned_task(client, backend)

        response = client.post("/api/agent/task/steps/1/skip")

        assert response.status_code == 200
        assert response.get_json()["task"]["steps"][1]["status"] == "skipped"

    def test_skip_missing_step(self, client, backend):
        start_planned_task(client, backend)

        assert client.post("/api/agent/task/steps/9/skip").status_code == 409

    def test_resume_requires_paused_task(self, client, backend):
        start_planned_task(client, backend)

        assert client.post("/api/agent/task/resume").status_code == 409


class TestOperationRoutes:
    """Tests for deciding file operations with auto-approve off."""

    @pytest.fixture
    def client(self, make_app, backend):
        client = make_app(auto_approve=False).test_client()
        start_planned_task(client, backend, plan="1. Create two notes\n")
        backend.replies.append(
            "[CREATE_FILE:a.md]\nA\n[/FILE]\n[CREATE_FILE:b.md]\nB\n[/FILE]\nProposed two notes."
        )
        client.post("/api/agent/task/approve")
        return client

    def test_approve_operation(self, client, vault):
        response = client.post("/api/agent/task/steps/0/operations/0/approve")

        assert response.status_code == 200
        assert response.get_json()["operation"]["status"] == "approved"
        assert (vault / "a.md").read_text() == "A"

    def test_reject_operation(self, client, vault):
        response = client.post("/api/agent/task/steps/0/operations/1/reject")

        assert response.get_json()["operation"]["status"] == "rejected"
        assert not (vault / "b.md").exists()

    def test_decided_operation_conflicts(self, client):
        client.post("/api/agent/task/steps/0/operations/1/reject")

        response = client.post("/api/agent/task/steps/0/operations/1/approve")

        assert response.status_code == 409


class TestRestoreOnStartup:
    def test_running_task_restored_as_paused(self, tmp_path, make_app):
        store = SessionStore(data_dir=tmp_path / "data")
        store.create_session()
        step = AgentStep(description="Write the body", status=StepStatus.RUNNING)
        store.update_session_agent_task(
            AgentTask(goal="Write a post", steps=[step], status=TaskStatus.RUNNING)
        )

        client = make_app().test_client()

        task = client.get("/api/agent/task").get_json()["task"]
        assert task["status"] == "paused"
        assert task["steps"][0]["status"] == "failed"
        assert task["steps"][0]["error"] == "Interrupted by process restart"


class TestSessionRoutes:
    def test_create_and_list(self, client):
        created = client.post("/api/sessions", json={"title": "Groceries"})

        assert created.status_code == 201
        session_id = created.get_json()["session"]["id"]

        listing = client.get("/api/sessions").get_json()
        assert listing["active_session_id"] == session_id
        assert [s["title"] for s in listing["sessions"]] == ["Groceries"]

    def test_get_session(self, client):
        session_id = client.post("/api/sessions").get_json()["session"]["id"]

        response = client.get(f"/api/sessions/{session_id}")

        assert response.get_json()["session"]["title"] == "New Chat"

    def test_get_missing_session(self, client):
        assert client.get("/api/sessions/nope").status_code == 404


class TestConfigRoutes:
    def test_get_config(self, client, vault):
        data = client.get("/api/config").get_json()

        assert data["vault_path"] == str(vault)
        assert data["agent_mode"]["enabled"] is True

    def test_update_agent_mode(self, app, client, tmp_path):
        response = client.post("/api/config/agent_mode", json={"max_steps": 4, "unknown": 1})

        assert response.status_code == 200
        assert response.get_json()["max_steps"] == 4
        assert app.extensions["agent_service"].mode.max_steps == 4
        saved = yaml.safe_load((tmp_path / "config.yaml").read_text())
        assert saved["agent_mode"]["max_steps"] == 4

    def test_update_agent_mode_invalid(self, client):
        response = client.post("/api/config/agent_mode", json={"max_steps": 0})

        assert response.status_code == 400


class TestTaskPersistence:
    """Tests for mirroring the live task into its session."""

    def test_task_stays_with_owning_session(self, app, client, backend):
        store = app.extensions["session_store"]
        start_planned_task(client, backend)
        owner = store.active_session_id

        other = client.post("/api/sessions").get_json()["session"]["id"]
        client.post("/api/agent/task/steps/1/skip")

        assert store.get_session(owner).active_agent_task.steps[1].status == StepStatus.SKIPPED
        assert store.get_session(other).active_agent_task is None

    def test_replaced_task_releases_its_session_binding(self, app, client, backend):
        persistence = app.extensions["task_persistence"]
        start_planned_task(client, backend, plan="1. Write the summary\n")
        backend.replies.append("Summary written.")
        client.post("/api/agent/task/approve")
        finished_id = client.get("/api/agent/task").get_json()["task"]["id"]

        start_planned_task(client, backend, goal="Make another list")

        current_id = client.get("/api/agent/task").get_json()["task"]["id"]
        assert current_id != finished_id
        assert list(persistence.owners) == [current_id]
