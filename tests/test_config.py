"""
Tests for AgentPRD configuration management.

Covers hierarchical loading (global file, project file, .env, environment),
value conversion, validation, secret masking and the write helpers used by
``agentprd config``.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import SecretStr, ValidationError

from agentprd.config import (
    ConfigManager,
    clear_config,
    get_config,
    init_project_config,
    is_config_loaded,
    load_config,
    set_config_value,
)
from agentprd.config.loader import (
    PROJECT_CONFIG_NAME,
    ConfigLoader,
    get_field_suggestion,
    global_config_path,
    project_config_path,
    set_nested,
)
from agentprd.config.models import DEFAULT_AGENT_URL, AgentConfig, Config, ServerConfig


def write_yaml(path: Path, data: dict) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


class TestConfigModels:
    def test_defaults(self):
        config = Config()

        assert config.agent.url == DEFAULT_AGENT_URL
        assert config.agent.timeout == 60
        assert config.agent.approval_mode == "suggest"
        assert config.server.port == 3500
        assert config.server.max_steps == 5
        assert config.llm.provider == "openai"
        assert config.app.log_level == "WARNING"

    def test_url_must_have_scheme(self):
        with pytest.raises(ValidationError):
            AgentConfig(url="agent.example.com")

    def test_timeout_bounds(self):
        with pytest.raises(ValidationError):
            AgentConfig(timeout=0)
        with pytest.raises(ValidationError):
            AgentConfig(timeout=601)

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            Config(agent={"endpoint": "http://x"})

    def test_relative_store_dir_is_made_absolute(self, tmp_path):
        assert ServerConfig(store_dir=Path("data")).store_dir == tmp_path / "data"

    def test_api_keys_fall_back_to_environment(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("AGENTPRD_AGENT_API_KEY", "shared-token")
        config = Config()

        assert config.llm.api_key.get_secret_value() == "sk-env"
        assert config.agent.api_key.get_secret_value() == "shared-token"

    def test_no_color_env(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        assert Config().app.no_color is True

    def test_model_dump_safe_masks_secrets(self):
        config = Config(agent={"api_key": SecretStr("abc")}, llm={"api_key": SecretStr("sk-123")})
        safe = config.model_dump_safe()

        assert safe["agent"]["api_key"] == "[REDACTED]"
        assert safe["llm"]["api_key"] == "[REDACTED]"
        assert isinstance(safe["server"]["store_dir"], str)
        assert "sk-123" not in repr(config)


class TestConfigLoader:
    def test_no_files(self):
        config = ConfigLoader().load()
        assert config.agent.url == DEFAULT_AGENT_URL

    def test_project_overrides_global(self):
        write_yaml(global_config_path(), {"agent": {"url": "http://global/agent", "timeout": 30}})
        write_yaml(project_config_path(), {"agent": {"url": "http://project/agent"}})

        config = ConfigLoader().load()

        assert config.agent.url == "http://project/agent"
        assert config.agent.timeout == 30

    def test_environment_overrides_files(self, monkeypatch):
        write_yaml(project_config_path(), {"agent": {"url": "http://project/agent"}, "server": {"port": 4000}})
        monkeypatch.setenv("AGENTPRD_AGENT_URL", "http://env/agent")
        monkeypatch.setenv("AGENTPRD_PORT", "4100")
        monkeypatch.setenv("AGENTPRD_TIMEOUT", "12.5")
        monkeypatch.setenv("AGENTPRD_DEBUG", "yes")
        monkeypatch.setenv("AGENTPRD_LOG_LEVEL", "debug")
        monkeypatch.setenv("LLM_MODEL", "gpt-4o-mini")

        config = ConfigLoader().load()

        assert config.agent.url == "http://env/agent"
        assert config.server.port == 4100
        assert config.agent.timeout == 12.5
        assert config.app.debug is True
        assert config.app.log_level == "DEBUG"
        assert config.llm.model == "gpt-4o-mini"

    def test_api_keys_from_environment_override_files(self, monkeypatch):
        write_yaml(project_config_path(), {"agent": {"api_key": "from-file"}})
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("AGENTPRD_AGENT_API_KEY", "token-env")

        config = ConfigLoader().load()

        assert config.llm.api_key.get_secret_value() == "sk-env"
        assert config.agent.api_key.get_secret_value() == "token-env"

    def test_dotenv_file_is_read(self, tmp_path, monkeypatch):
        monkeypatch.delenv("AGENTPRD_USER_ID", raising=False)
        (tmp_path / ".env").write_text("AGENTPRD_USER_ID=from-dotenv\n", encoding="utf-8")

        assert ConfigLoader().load().agent.user_id == "from-dotenv"

    def test_invalid_values_raise_and_show_panel(self, console_output):
        write_yaml(project_config_path(), {"agent": {"url": "not-a-url"}})

        with pytest.raises(ValidationError):
            ConfigLoader().load()

        output = console_output()
        assert "Configuration Validation Error" in output
        assert "agent → url" in output

    def test_malformed_yaml_raises(self, mock_console):
        project_config_path().write_text("agent: [unclosed", encoding="utf-8")
        with pytest.raises(yaml.YAMLError):
            ConfigLoader().load()

    def test_bad_numeric_env_value_fails_validation(self, monkeypatch, mock_console):
        monkeypatch.setenv("AGENTPRD_PORT", "lots")
        with pytest.raises(ValidationError):
            ConfigLoader().load()

    def test_field_suggestions(self):
        assert "OPENAI_API_KEY" in get_field_suggestion("llm → api_key")
        assert "protocol" in get_field_suggestion("agent → url")
        assert "suggest" in get_field_suggestion("agent → approval_mode")
        assert get_field_suggestion("app → debug") == ""

    def test_set_nested(self):
        data = {"agent": "oops"}
        set_nested(data, ("agent", "url"), "http://x")
        assert data == {"agent": {"url": "http://x"}}


class TestConfigManager:
    def test_singleton(self):
        assert ConfigManager() is ConfigManager()

    def test_load_caches_until_cleared(self):
        first = load_config()
        assert load_config() is first
        assert is_config_loaded()

        clear_config()
        assert not is_config_loaded()
        with pytest.raises(RuntimeError):
            get_config()

    def test_reload(self, monkeypatch):
        first = load_config()
        monkeypatch.setenv("AGENTPRD_USER_ID", "someone")
        assert load_config().agent.user_id is None
        assert load_config(reload=True).agent.user_id == "someone"
        assert first is not get_config()


class TestConfigWriters:
    def test_init_creates_valid_template(self):
        path = init_project_config()

        assert path.name == PROJECT_CONFIG_NAME
        assert Config(**yaml.safe_load(path.read_text(encoding="utf-8"))).server.port == 3500

    def test_init_refuses_to_overwrite(self):
        init_project_config()
        with pytest.raises(FileExistsError):
            init_project_config()
        assert init_project_config(force=True).exists()

    def test_set_value_creates_and_merges(self):
        set_config_value("agent.url", "http://localhost:9000/agent")
        set_config_value("agent.timeout", 30)

        data = yaml.safe_load(project_config_path().read_text(encoding="utf-8"))
        assert data == {"agent": {"url": "http://localhost:9000/agent", "timeout": 30}}
        assert load_config().agent.timeout == 30

    def test_set_value_to_custom_path(self, tmp_path):
        target = tmp_path / "nested" / "custom.yaml"
        assert set_config_value("app.show_reasoning", True, target) == target
        assert yaml.safe_load(target.read_text(encoding="utf-8")) == {"app": {"show_reasoning": True}}

    def test_invalid_value_is_not_written(self):
        set_config_value("server.port", 4000)
        with pytest.raises(ValidationError):
            set_config_value("server.port", 70000)

        assert yaml.safe_load(project_config_path().read_text(encoding="utf-8"))["server"]["port"] == 4000

    @pytest.mark.parametrize("key", ["agent", "agent.url.extra", ""])
    def test_bad_keys(self, key):
        with pytest.raises(KeyError):
            set_config_value(key, "x")

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            set_config_value("agent.colour", "blue")
        assert not project_config_path().exists()
