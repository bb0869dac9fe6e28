"""Flask application factory for the vault agent.

This module creates and configures the Flask application, wiring together
the services:

- ConfigService: Configuration loading and migration
- SessionStore: Persisted chat sessions and agent task snapshots
- EventBus: Real-time SSE event broadcasting
- AgentService: Planning and step execution, driven on the AgentRunner loop

Usage:
    from vault_agent.app import create_app
    app = create_app()
    app.run(port=5050)
"""

import logging
import os
from pathlib import Path

from flask import Flask

from vault_agent.backends import GenerativeBackend, OpenRouterBackend
from vault_agent.models import AgentTask, AppConfig
from vault_agent.routes import register_blueprints
from vault_agent.services import (
    AgentRunner,
    AgentService,
    EventBus,
    FileOperationService,
    KnowledgeService,
    SessionStore,
    get_config_service,
    get_event_bus,
)
from vault_agent.services.event_bus import AGENT_TASK_DISCARDED, AGENT_TASK_UPDATED

logger = logging.getLogger(__name__)


def _load_dotenv() -> None:
    """Load environment variables from .env file if it exists."""
    env_file = Path(".env")
    if env_file.exists():
        with open(env_file) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, value = line.split("=", 1)
                    key = key.strip()
                    value = value.strip().strip('"').strip("'")
                    if key and key not in os.environ:
                        os.environ[key] = value


def create_app(
    config_path: str = "config.yaml",
    backend: GenerativeBackend | None = None,
    runner: AgentRunner | None = None,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        config_path: Path to the configuration file.
        backend: Generative backend; OpenRouter when not given.
        runner: Loop runner for the agent service; a started AgentRunner
            when not given.

    Returns:
        Configured Flask application.
    """
    _load_dotenv()

    config_service = get_config_service(config_path)
    config = config_service.get_config()

    app = Flask(__name__)
    app.extensions["config"] = config
    app.extensions["config_service"] = config_service

    _init_services(app, config, backend, runner)

    register_blueprints(app)

    return app


def _init_services(
    app: Flask,
    config: AppConfig,
    backend: GenerativeBackend | None,
    runner: AgentRunner | None,
) -> None:
    """Initialize all services and wire them together."""
    session_store = SessionStore(data_dir=config.data_dir)
    app.extensions["session_store"] = session_store

    event_bus = get_event_bus()
    app.extensions["event_bus"] = event_bus

    if backend is None:
        backend = OpenRouterBackend(config=config.backend, api_key=os.environ.get("OPENROUTER_API_KEY"))
    app.extensions["backend"] = backend

    file_operations = FileOperationService(config.vault_path)
    app.extensions["knowledge_service"] = KnowledgeService(config.vault_path)

    persistence = TaskPersistence(session_store, event_bus)
    app.extensions["task_persistence"] = persistence
    agent_service = AgentService(
        backend=backend,
        file_operations=file_operations,
        mode=config.agent_mode,
        on_progress=persistence.on_progress,
        on_discard=persistence.on_discard,
    )
    app.extensions["agent_service"] = agent_service

    _restore_saved_task(agent_service, session_store)

    if runner is None:
        runner = AgentRunner()
        runner.start()
    app.extensions["agent_runner"] = runner

    logger.info("Services initialized")


class TaskPersistence:
    """Progress and discard hooks that mirror the live task into its session.

    A task stays attached to the session that was active when it first
    reported progress, even if another session becomes active meanwhile.
    The agent service owns one task at a time, so a new task id releases
    every older binding.
    """

    def __init__(self, session_store: SessionStore, event_bus: EventBus):
        self.session_store = session_store
        self.event_bus = event_bus
        self.owners: dict[str, str] = {}

    def on_progress(self, task: AgentTask) -> None:
        session_id = self.owners.get(task.id)
        if session_id is None:
            self.owners.clear()
            session_id = self.session_store.get_active_session().id
            self.owners[task.id] = session_id
        snapshot = task.snapshot()
        self.session_store.update_session_agent_task(snapshot, session_id)
        self.event_bus.emit(AGENT_TASK_UPDATED, {"task": snapshot.model_dump(mode="json")})

    def on_discard(self, task: AgentTask) -> None:
        session_id = self.owners.pop(task.id, None)
        if session_id is not None:
            self.session_store.update_session_agent_task(None, session_id)
        self.event_bus.emit(AGENT_TASK_DISCARDED, {"task_id": task.id})


def _restore_saved_task(agent_service: AgentService, session_store: SessionStore) -> None:
    """Hand the active session's saved task back to the agent service."""
    active_id = session_store.active_session_id
    session = session_store.get_session(active_id) if active_id else None
    if session is None or session.active_agent_task is None:
        return

    task = session.active_agent_task.model_copy(deep=True)
    agent_service.restore_task(task)


def main():
    """Run the Flask application."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = create_app()
    config = app.extensions["config"]

    logger.info(f"Starting vault agent on port {config.port}, vault at {config.vault_path}")
    app.run(host="127.0.0.1", port=config.port, debug=config.debug, threaded=True, use_reloader=False)


if __name__ == "__main__":
    main()
