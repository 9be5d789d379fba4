"""
Pydantic models for AgentPRD configuration.

One ``Config`` object serves both ends of the wire: the ``agent`` section
configures the CLI client, the ``server`` and ``llm`` sections configure the
agent endpoint.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

ApprovalMode = Literal["suggest", "auto-edit", "full-auto"]

DEFAULT_AGENT_URL = "http://127.0.0.1:3500/agent"


class AgentConfig(BaseModel):
    """Client-side settings for reaching the agent endpoint."""

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    url: str = Field(DEFAULT_AGENT_URL, description="Agent endpoint URL")
    api_key: Optional[SecretStr] = Field(None, validate_default=True, description="Bearer token sent to the agent")
    timeout: float = Field(60.0, ge=1, le=600, description="Absolute per-request deadline in seconds")
    approval_mode: ApprovalMode = "suggest"
    user_id: Optional[str] = None
    history_window: int = Field(10, ge=1, le=100, description="Conversation entries kept locally")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("agent URL must start with http:// or https://")
        return v

    @field_validator("api_key")
    @classmethod
    def load_api_key_from_env(cls, v: Optional[SecretStr]) -> Optional[SecretStr]:
        if v is not None:
            return v
        env_value = os.getenv("AGENTPRD_AGENT_API_KEY")
        return SecretStr(env_value) if env_value else None


class ServerConfig(BaseModel):
    """Settings for the agent HTTP endpoint."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    host: str = "127.0.0.1"
    port: int = Field(3500, ge=1, le=65535)
    api_key: Optional[SecretStr] = Field(None, description="Required bearer token, if set")
    kv_namespace: str = "agentprd-main"
    store_dir: Path = Field(default_factory=lambda: Path.home() / ".agentprd" / "store")
    max_steps: int = Field(5, ge=1, le=20, description="Model/tool round trips per turn")
    history_window: int = Field(10, ge=1, le=100, description="Entries returned in metadata")

    @field_validator("store_dir")
    @classmethod
    def validate_store_dir(cls, v: Path) -> Path:
        """Ensure directory path is absolute."""
        if not v.is_absolute():
            return Path.cwd() / v
        return v


class LLMProviderConfig(BaseModel):
    """Configuration for the hosted text-generation API."""

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    provider: Literal["openai"] = "openai"
    api_key: Optional[SecretStr] = Field(None, validate_default=True)
    model: str = Field("gpt-4o", description="Model name")
    base_url: Optional[str] = None
    timeout: int = Field(60, ge=1, le=600, description="Request timeout in seconds")
    max_retries: int = Field(3, ge=1, le=10, description="Maximum retry attempts")
    temperature: float = Field(0.7, ge=0.0, le=2.0)

    @field_validator('api_key')
    @classmethod
    def load_api_key_from_env(cls, v: Optional[SecretStr]) -> Optional[SecretStr]:
        """Fall back to OPENAI_API_KEY when no key is configured."""
        if v is not None:
            return v
        env_value = os.getenv("OPENAI_API_KEY")
        return SecretStr(env_value) if env_value else None


class ApplicationConfig(BaseModel):
    """General application settings."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "WARNING",
        description="Console logging level"
    )
    no_color: bool = Field(False, validate_default=True, description="Disable colored output")
    show_reasoning: bool = Field(False, description="Render detected reasoning blocks")

    @field_validator('no_color')
    @classmethod
    def check_no_color_env(cls, v: bool) -> bool:
        """Respect the standard NO_COLOR environment variable."""
        if os.getenv('NO_COLOR'):
            return True
        return v


class Config(BaseModel):
    """
    Main configuration model for AgentPRD.
    """

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )

    agent: AgentConfig = Field(default_factory=AgentConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    llm: LLMProviderConfig = Field(default_factory=LLMProviderConfig)
    app: ApplicationConfig = Field(default_factory=ApplicationConfig)

    def model_dump_safe(self) -> Dict[str, Any]:
        """
        Dump model to dict with secrets masked for safe display.

        Returns:
            Dictionary with SecretStr values replaced with "[REDACTED]"
        """
        data = self.model_dump()

        def mask_secrets(obj: Any) -> Any:
            if isinstance(obj, dict):
                return {k: mask_secrets(v) for k, v in obj.items()}
            elif isinstance(obj, list):
                return [mask_secrets(item) for item in obj]
            elif hasattr(obj, 'get_secret_value'):
                return "[REDACTED]"
            elif isinstance(obj, Path):
                return str(obj)
            else:
                return obj

        return mask_secrets(data)

    def __repr__(self) -> str:
        return f"Config({self.model_dump_safe()})"


__all__ = [
    "Config",
    "AgentConfig",
    "ServerConfig",
    "LLMProviderConfig",
    "ApplicationConfig",
    "ApprovalMode",
    "DEFAULT_AGENT_URL",
]
