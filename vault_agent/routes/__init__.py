"""Flask routes for the vault agent."""

from vault_agent.routes.agent import agent_bp
from vault_agent.routes.config import config_bp
from vault_agent.routes.events import events_bp
from vault_agent.routes.sessions import sessions_bp

__all__ = [
    "agent_bp",
    "config_bp",
    "events_bp",
    "sessions_bp",
]


def register_blueprints(app):
    """Register all blueprints with the Flask app.

    Args:
        app: The Flask application instance.
    """
    app.register_blueprint(agent_bp, url_prefix="/api")
    app.register_blueprint(config_bp, url_prefix="/api")
    app.register_blueprint(events_bp, url_prefix="/api")
    app.register_blueprint(sessions_bp, url_prefix="/api")
