"""Configuration loading and migration service.

Handles loading config.yaml and migrating the legacy camelCase agent mode
settings to the current schema.
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from vault_agent.models.config import AgentModeConfig, AppConfig

logger = logging.getLogger(__name__)

# Legacy agentMode keys → AgentModeConfig fields
LEGACY_AGENT_MODE_KEYS = {
    "enabled": "enabled",
    "maxSteps": "max_steps",
    "autoApprove": "auto_approve",
    "pauseOnError": "pause_on_error",
    "contextWindowSteps": "context_window_steps",
    "stepTimeoutSeconds": "step_timeout_seconds",
}

_TOP_LEVEL_KEYS = ("vault_path", "data_dir", "port", "debug", "backend")


class ConfigService:
    """Service for loading and managing application configuration.

    Handles:
    - Loading config from config.yaml
    - Validating against Pydantic schema
    - Migrating legacy agentMode settings
    - Saving updated config
    """

    def __init__(self, config_path: str | Path = "config.yaml"):
        """Initialize the config service.

        Args:
            config_path: Path to the config file.
        """
        self.config_path = Path(config_path)
        self._config: AppConfig | None = None

    def load(self) -> AppConfig:
        """Load and validate configuration.

        Returns:
            Validated AppConfig instance. Defaults when the file is missing,
            unreadable or invalid.
        """
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, using defaults")
            self._config = AppConfig()
            return self._config

        try:
            with open(self.config_path) as f:
                raw_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Error reading config file: {e}, using defaults")
            self._config = AppConfig()
            return self._config

        if not isinstance(raw_config, dict):
            logger.warning("Config file is not a mapping, using defaults")
            self._config = AppConfig()
            return self._config

        migrated = self._migrate_config(raw_config)

        try:
            self._config = AppConfig(**migrated)
        except Exception as e:
            logger.warning(f"Config validation error: {e}, using defaults")
            self._config = AppConfig()

        return self._config

    def get_config(self) -> AppConfig:
        """Get the current configuration.

        Loads from disk if not already loaded.
        """
        if self._config is None:
            return self.load()
        return self._config

    def reload(self) -> AppConfig:
        """Force reload configuration from disk."""
        self._config = None
        return self.load()

    def save(self, config: AppConfig | None = None) -> bool:
        """Save configuration to disk.

        Args:
            config: Config to save. Uses current config if not provided.

        Returns:
            True if save succeeded.
        """
        config = config or self._config
        if config is None:
            return False

        try:
            config_dict = config.model_dump(mode="json")
            with open(self.config_path, "w") as f:
                yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
            self._config = config
            return True
        except OSError as e:
            logger.error(f"Error saving config: {e}")
            return False

    def _migrate_config(self, raw: dict[str, Any]) -> dict[str, Any]:
        """Migrate legacy config format to the current schema.

        Handles:
        - camelCase agentMode settings → agent_mode
        - Dropping unknown keys with an info log

        Args:
            raw: Raw config dictionary from YAML.

        Returns:
            Migrated config dictionary.
        """
        migrated: dict[str, Any] = {k: raw[k] for k in _TOP_LEVEL_KEYS if k in raw}

        agent_mode: dict[str, Any] = {}
        legacy = raw.get("agentMode")
        if isinstance(legacy, dict):
            for key, value in legacy.items():
                field = LEGACY_AGENT_MODE_KEYS.get(key)
                if field is None:
                    logger.info(f"Ignoring unknown agentMode setting: {key}")
                    continue
                agent_mode[field] = value

        # snake_case settings win over legacy ones
        current = raw.get("agent_mode")
        if isinstance(current, dict):
            for key, value in current.items():
                if key not in AgentModeConfig.model_fields:
                    logger.info(f"Ignoring unknown agent_mode setting: {key}")
                    continue
                agent_mode[key] = value

        if agent_mode:
            migrated["agent_mode"] = agent_mode

        for key in raw:
            if key not in _TOP_LEVEL_KEYS and key not in ("agentMode", "agent_mode"):
                logger.info(f"Ignoring unknown config field: {key}")

        return migrated


# Module-level singleton
_config_service: ConfigService | None = None


def get_config_service(config_path: str | Path = "config.yaml") -> ConfigService:
    """Get the global config service instance.

    Args:
        config_path: Path to config file (only used on first call).

    Returns:
        ConfigService singleton.
    """
    global _config_service
    if _config_service is None:
        _config_service = ConfigService(config_path)
    return _config_service


def reset_config_service() -> None:
    """Reset the global config service (for testing)."""
    global _config_service
    _config_service = None
