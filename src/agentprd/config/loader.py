"""
Configuration loader for AgentPRD.

Hierarchical configuration loading with precedence:
Environment Variables > .env > ./.agentprd.yaml > ~/.agentprd/config.yaml > defaults
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.panel import Panel
from rich.text import Text

from agentprd.utils.console import console
from agentprd.utils.logger import get_logger
from .models import Config

logger = get_logger(__name__)

PROJECT_CONFIG_NAME = ".agentprd.yaml"

# Environment variable -> config path
ENV_MAPPING: Dict[str, tuple[str, ...]] = {
    # Client
    "AGENTPRD_AGENT_URL": ("agent", "url"),
    "AGENTPRD_TIMEOUT": ("agent", "timeout"),
    "AGENTPRD_APPROVAL_MODE": ("agent", "approval_mode"),
    "AGENTPRD_USER_ID": ("agent", "user_id"),
    "AGENTPRD_AGENT_API_KEY": ("agent", "api_key"),

    # Server
    "AGENTPRD_HOST": ("server", "host"),
    "AGENTPRD_PORT": ("server", "port"),
    "AGENTPRD_SERVER_API_KEY": ("server", "api_key"),
    "AGENTPRD_STORE_DIR": ("server", "store_dir"),
    "AGENTPRD_MAX_STEPS": ("server", "max_steps"),

    # LLM
    "OPENAI_API_KEY": ("llm", "api_key"),
    "LLM_MODEL": ("llm", "model"),
    "LLM_TIMEOUT": ("llm", "timeout"),
    "LLM_MAX_RETRIES": ("llm", "max_retries"),
    "LLM_BASE_URL": ("llm", "base_url"),

    # Application
    "AGENTPRD_DEBUG": ("app", "debug"),
    "AGENTPRD_LOG_LEVEL": ("app", "log_level"),
    "AGENTPRD_SHOW_REASONING": ("app", "show_reasoning"),
    "NO_COLOR": ("app", "no_color"),
}

BOOL_VARS = {"AGENTPRD_DEBUG", "AGENTPRD_SHOW_REASONING", "NO_COLOR"}
INT_VARS = {"AGENTPRD_PORT", "AGENTPRD_MAX_STEPS", "LLM_TIMEOUT", "LLM_MAX_RETRIES"}
FLOAT_VARS = {"AGENTPRD_TIMEOUT"}
PATH_VARS = {"AGENTPRD_STORE_DIR"}


def global_config_path() -> Path:
    return Path.home() / ".agentprd" / "config.yaml"


def project_config_path() -> Path:
    return Path.cwd() / PROJECT_CONFIG_NAME


class ConfigLoader:
    """
    Loads configuration from multiple sources with proper precedence.

    Loading order (highest to lowest precedence):
    1. Environment variables (AGENTPRD_*, LLM_*, OPENAI_API_KEY, NO_COLOR)
    2. .env file in current directory
    3. .agentprd.yaml in current directory (project config)
    4. ~/.agentprd/config.yaml (user global config)
    5. Built-in defaults
    """

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose

    def load(self) -> Config:
        """
        Load configuration from all sources with proper precedence.

        Raises:
            ValidationError: If configuration is invalid
        """
        config_dict: Dict[str, Any] = {}

        for path in (global_config_path(), project_config_path()):
            data = self._load_yaml(path)
            if data:
                config_dict = self._deep_merge(config_dict, data)
                logger.debug("Loaded config file", path=str(path))
                if self.verbose:
                    console.print(f"[dim]📁 Loaded config from {path}[/dim]")

        env_path = Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            logger.debug("Loaded .env file", path=str(env_path))

        config_dict = self._apply_env_overrides(config_dict)

        try:
            return Config(**config_dict)
        except ValidationError as e:
            self._handle_validation_error(e)
            raise

    def _load_yaml(self, path: Path) -> Optional[Dict[str, Any]]:
        """
        Load YAML config file safely.

        Returns:
            Parsed YAML data or None if file doesn't exist

        Raises:
            yaml.YAMLError: If YAML is malformed
        """
        if not path.exists():
            return None

        try:
            with open(path, 'r', encoding='utf-8') as f:
                content = yaml.safe_load(f) or {}
                return content if isinstance(content, dict) else {}

        except yaml.YAMLError as e:
            console.error(f"Invalid YAML in {path}: {e}")
            raise
        except OSError as e:
            console.error(f"Failed to read {path}: {e}")
            raise

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries with override taking precedence."""
        result = base.copy()

        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config_dict: Dict[str, Any]) -> Dict[str, Any]:
        for env_var, config_path in ENV_MAPPING.items():
            value = os.getenv(env_var)
            if value is not None:
                set_nested(config_dict, config_path, self._convert_env_value(env_var, value))

        return config_dict

    def _convert_env_value(self, env_var: str, value: str) -> Any:
        """Convert environment variable string to appropriate type."""
        if env_var in BOOL_VARS:
            return value.lower() in ('1', 'true', 'yes', 'on')

        if env_var in INT_VARS or env_var in FLOAT_VARS:
            try:
                return float(value) if env_var in FLOAT_VARS else int(value)
            except ValueError:
                console.warning(f"Invalid numeric value for {env_var}: {value}")
                return value

        if env_var in PATH_VARS:
            return Path(value)

        if env_var == "AGENTPRD_LOG_LEVEL":
            return value.upper()

        return value

    def _handle_validation_error(self, error: ValidationError) -> None:
        """Display validation errors with helpful suggestions."""
        console.print()
        console.print(
            Panel(
                self._format_validation_errors(error),
                title="[error]❌ Configuration Validation Error[/error]",
                title_align="left",
                border_style="error.text",
                padding=(1, 2),
            )
        )

    def _format_validation_errors(self, error: ValidationError) -> Text:
        text = Text()

        for i, err in enumerate(error.errors()):
            if i > 0:
                text.append("\n")

            field_path = " → ".join(str(loc) for loc in err['loc'])
            text.append("Field: ", style="dim")
            text.append(field_path, style="warning.text")
            text.append("\n")

            text.append("Error: ", style="dim")
            text.append(err['msg'], style="error.text")
            text.append("\n")

            suggestion = get_field_suggestion(field_path)
            if suggestion:
                text.append("💡 Tip: ", style="info.text")
                text.append(suggestion, style="dim")
                text.append("\n")

        return text


def get_field_suggestion(field_path: str) -> str:
    """Return a hint for a failing config field, or an empty string."""
    field_lower = field_path.lower()

    if "api_key" in field_lower:
        return "Set AGENTPRD_AGENT_API_KEY (client) or OPENAI_API_KEY (server)"
    if "url" in field_lower:
        return "Ensure the URL includes the protocol, e.g. http://127.0.0.1:3500/agent"
    if "approval_mode" in field_lower:
        return "Use one of: suggest, auto-edit, full-auto"
    if "timeout" in field_lower:
        return "Timeout must be between 1 and 600 seconds"
    if "port" in field_lower:
        return "Port must be between 1 and 65535"
    if "dir" in field_lower:
        return "Ensure the path exists and is writable"
    return ""


def set_nested(config_dict: Dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    """Set a nested dictionary value using a path tuple."""
    current = config_dict

    for key in path[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]

    current[path[-1]] = value


__all__ = [
    "ConfigLoader",
    "ENV_MAPPING",
    "PROJECT_CONFIG_NAME",
    "get_field_suggestion",
    "global_config_path",
    "project_config_path",
    "set_nested",
]
