"""Config routes.

Provides REST API endpoints for configuration management:
- GET /api/config - Get current configuration
- POST /api/config/agent_mode - Update agent mode settings
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError

from vault_agent.models.config import AgentModeConfig, AppConfig
from vault_agent.services.config_service import ConfigService

config_bp = Blueprint("config", __name__)

logger = logging.getLogger(__name__)


def _get_config_service() -> ConfigService:
    return current_app.extensions["config_service"]


def _get_config() -> AppConfig:
    return current_app.extensions["config"]


@config_bp.route("/config", methods=["GET"])
def get_config():
    """Get the current configuration.

    Returns:
        JSON object with all configuration values.
    """
    return jsonify(_get_config().model_dump(mode="json"))


@config_bp.route("/config/agent_mode", methods=["POST"])
def update_agent_mode():
    """Update agent mode settings.

    Only provided fields are updated; the new settings apply from the next
    step or task onward.

    Request body:
        {"auto_approve": false, "max_steps": 5, ...}

    Returns:
        JSON object with the updated agent mode settings.
    """
    data = request.get_json(silent=True) or {}
    config = _get_config()

    updated = config.agent_mode.model_dump()
    for key, value in data.items():
        if key in updated:
            updated[key] = value

    try:
        mode = AgentModeConfig(**updated)
    except ValidationError as e:
        logger.warning(f"Agent mode validation error: {e}")
        return jsonify({"error": f"Invalid agent mode settings: {e}"}), 400

    new_config = config.model_copy(update={"agent_mode": mode})
    if not _get_config_service().save(new_config):
        return jsonify({"error": "Failed to save configuration"}), 500

    current_app.extensions["config"] = new_config
    service = current_app.extensions["agent_service"]
    current_app.extensions["agent_runner"].call(service.update_mode, mode)

    logger.info(f"Agent mode updated: {mode.model_dump()}")
    return jsonify(mode.model_dump(mode="json"))
