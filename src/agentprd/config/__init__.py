"""
AgentPRD Configuration Management.

Thread-safe singleton access to configuration loaded from YAML files, .env
and environment variables.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Optional

import yaml

from .loader import ConfigLoader, project_config_path, global_config_path, set_nested
from .models import Config


class ConfigManager:
    """
    Thread-safe singleton configuration manager.
    """

    _instance: Optional[ConfigManager] = None
    _lock = threading.Lock()
    _config: Optional[Config] = None
    _config_lock = threading.RLock()

    def __new__(cls) -> ConfigManager:
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def load_config(self, reload: bool = False) -> Config:
        """
        Load configuration, caching the result.

        Raises:
            ValidationError: If configuration is invalid
        """
        with self._config_lock:
            if self._config is None or reload:
                loader = ConfigLoader()
                self._config = loader.load()

            return self._config

    def get_config(self) -> Config:
        """
        Get current configuration.

        Raises:
            RuntimeError: If configuration hasn't been loaded yet
        """
        with self._config_lock:
            if self._config is None:
                raise RuntimeError(
                    "Configuration not loaded. Call load_config() first or use get_config_safe()."
                )
            return self._config

    def get_config_safe(self) -> Config:
        """Get configuration, loading it if necessary."""
        with self._config_lock:
            if self._config is None:
                return self.load_config()
            return self._config

    def is_loaded(self) -> bool:
        with self._config_lock:
            return self._config is not None

    def clear(self) -> None:
        """Clear loaded configuration (useful for testing)."""
        with self._config_lock:
            self._config = None


# Global instance
_manager = ConfigManager()


def load_config(reload: bool = False) -> Config:
    """Load configuration (singleton pattern)."""
    return _manager.load_config(reload=reload)


def get_config() -> Config:
    return _manager.get_config()


def get_config_safe() -> Config:
    """Get configuration, loading it automatically if needed."""
    return _manager.get_config_safe()


def is_config_loaded() -> bool:
    return _manager.is_loaded()


def clear_config() -> None:
    """Clear loaded configuration (useful for testing)."""
    _manager.clear()


PROJECT_TEMPLATE = '''# AgentPRD Configuration
# Values here override ~/.agentprd/config.yaml and are overridden by
# environment variables (AGENTPRD_*, LLM_*, OPENAI_API_KEY).

# Client settings
agent:
  url: http://127.0.0.1:3500/agent
  timeout: 60  # Absolute per-request deadline in seconds
  approval_mode: suggest  # Options: suggest, auto-edit, full-auto
  # user_id: your-name
  # api_key: set AGENTPRD_AGENT_API_KEY instead

# Agent server settings (agentprd serve)
server:
  host: 127.0.0.1
  port: 3500
  kv_namespace: agentprd-main
  max_steps: 5

# Text generation
llm:
  model: gpt-4o
  timeout: 60
  max_retries: 3

# Application settings
app:
  debug: false
  log_level: WARNING  # Options: DEBUG, INFO, WARNING, ERROR
  show_reasoning: false
  no_color: false

# API keys belong in the environment or a .env file:
# OPENAI_API_KEY=your_key_here
# AGENTPRD_AGENT_API_KEY=shared_token
'''


def init_project_config(path: Optional[Path] = None, force: bool = False) -> Path:
    """
    Write a commented ``.agentprd.yaml`` template.

    Raises:
        FileExistsError: If the file exists and ``force`` is False
    """
    config_path = path or project_config_path()

    if config_path.exists() and not force:
        raise FileExistsError(
            f"Configuration file already exists: {config_path}\n"
            "Use --force to overwrite or choose a different path."
        )

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(PROJECT_TEMPLATE, encoding='utf-8')

    return config_path


def set_config_value(key: str, value: Any, path: Optional[Path] = None) -> Path:
    """
    Persist a dotted ``section.field`` value into the project YAML file.

    The resulting file is validated before it is written, so an invalid
    value never reaches disk.

    Raises:
        KeyError: If the key is not of the form ``section.field``
        pydantic.ValidationError: If the new value is invalid
    """
    parts = tuple(part for part in key.split(".") if part)
    if len(parts) != 2:
        raise KeyError(f"Expected a key like 'agent.url', got '{key}'")

    config_path = path or project_config_path()
    data: dict[str, Any] = {}
    if config_path.exists():
        loaded = yaml.safe_load(config_path.read_text(encoding='utf-8')) or {}
        if isinstance(loaded, dict):
            data = loaded

    set_nested(data, parts, value)
    Config(**data)

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        yaml.safe_dump(data, default_flow_style=False, sort_keys=False),
        encoding='utf-8',
    )
    clear_config()
    return config_path


__all__ = [
    "Config",
    "ConfigManager",
    "load_config",
    "get_config",
    "get_config_safe",
    "is_config_loaded",
    "clear_config",
    "init_project_config",
    "set_config_value",
    "project_config_path",
    "global_config_path",
]
