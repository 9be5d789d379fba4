"""
Tests for the agentprd command line, run through typer's CliRunner.

Network and server entry points are replaced with fakes so the commands'
own behavior (argument handling, output, exit codes) is what gets tested.
"""

from __future__ import annotations

import json

import pytest
import yaml

from agentprd import __version__
from agentprd.cli.main import app
from agentprd.client.agent_client import AgentReply
from agentprd.config.loader import project_config_path
from agentprd.exceptions import RateLimitError
from agentprd.protocol.frames import ToolEvent, ToolEventKind


class FakeAgentClient:
    """Stands in for AgentClient inside ``agentprd ask``."""

    calls: list = []
    error = None

    def __init__(self, config):
        self.config = config

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None

    async def stream_message(self, message, command=None, on_text=None, on_tool_event=None):
        FakeAgentClient.calls.append((message, command))
        if FakeAgentClient.error is not None:
            raise FakeAgentClient.error
        on_text("Here is your plan.")
        on_tool_event(ToolEvent(type=ToolEventKind.CALL, tool_name="list_prds", args={"limit": 3}))
        on_tool_event(ToolEvent(type=ToolEventKind.CALL_START, tool_name="hidden_start"))
        return AgentReply(content="Here is your plan.", session_id="session_42")


@pytest.fixture
def fake_client(monkeypatch):
    FakeAgentClient.calls = []
    FakeAgentClient.error = None
    monkeypatch.setattr("agentprd.client.agent_client.AgentClient", FakeAgentClient)
    return FakeAgentClient


class TestBasics:
    def test_version_flag(self, cli_runner):
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"AgentPRD version {__version__}" in result.output

    def test_version_command(self, cli_runner):
        result = cli_runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, cli_runner):
        result = cli_runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for name in ("chat", "ask", "serve", "config"):
            assert name in result.output


class TestConfigCommands:
    def test_init_then_refuse(self, cli_runner):
        first = cli_runner.invoke(app, ["config", "init"])
        assert first.exit_code == 0
        assert "Created project configuration" in first.output
        assert project_config_path().exists()

        second = cli_runner.invoke(app, ["config", "init"])
        assert second.exit_code == 1
        assert "already exists" in second.output

    def test_set_parses_yaml_values(self, cli_runner):
        result = cli_runner.invoke(app, ["config", "set", "agent.timeout", "30"])
        assert result.exit_code == 0
        assert "Set agent.timeout" in result.output

        cli_runner.invoke(app, ["config", "set", "app.show_reasoning", "true"])
        data = yaml.safe_load(project_config_path().read_text(encoding="utf-8"))
        assert data == {"agent": {"timeout": 30}, "app": {"show_reasoning": True}}

    def test_set_rejects_invalid(self, cli_runner):
        bad_value = cli_runner.invoke(app, ["config", "set", "agent.url", "ftp://nope"])
        bad_key = cli_runner.invoke(app, ["config", "set", "agent", "x"])

        assert bad_value.exit_code == 1
        assert "Invalid value for agent.url" in bad_value.output
        assert bad_key.exit_code == 1

    def test_show_masks_secrets(self, cli_runner, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-very-secret")

        table = cli_runner.invoke(app, ["config", "show"])
        as_json = cli_runner.invoke(app, ["config", "show", "--format", "json"])

        assert table.exit_code == 0
        assert "sk-very-secret" not in table.output
        assert '"api_key": "[REDACTED]"' in as_json.output

    def test_show_with_secrets(self, cli_runner, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-very-secret")
        result = cli_runner.invoke(app, ["config", "show", "--format", "yaml", "--include-secrets"])

        assert result.exit_code == 0
        assert "sk-very-secret" in result.output

    def test_show_invalid_config(self, cli_runner):
        project_config_path().write_text(yaml.safe_dump({"server": {"port": 0}}), encoding="utf-8")
        result = cli_runner.invoke(app, ["config", "show"])
        assert result.exit_code == 1

    def test_path(self, cli_runner):
        result = cli_runner.invoke(app, ["config", "path"])
        assert result.exit_code == 0
        assert "Project" in result.output and "Global" in result.output


class TestAskCommand:
    def test_streams_reply(self, cli_runner, fake_client):
        result = cli_runner.invoke(app, ["ask", "What should I build next?"])

        assert result.exit_code == 0
        assert "Here is your plan." in result.output
        assert "list_prds" in result.output
        assert "hidden_start" not in result.output
        assert "session session_42" in result.output
        assert fake_client.calls == [("What should I build next?", None)]

    def test_inline_command(self, cli_runner, fake_client):
        cli_runner.invoke(app, ["ask", "/create-prd mobile analytics"])
        assert fake_client.calls == [("mobile analytics", "create-prd")]

    def test_explicit_command_option(self, cli_runner, fake_client):
        cli_runner.invoke(app, ["ask", "--command", "coach", "how do I say no?"])
        assert fake_client.calls == [("how do I say no?", "coach")]

    def test_failure_exits_nonzero(self, cli_runner, fake_client):
        fake_client.error = RateLimitError("Rate limit exceeded. Please wait before trying again.", status_code=429)
        result = cli_runner.invoke(app, ["ask", "hi"])

        assert result.exit_code == 1
        assert "Rate limit exceeded" in result.output


class TestServeCommand:
    def test_runs_app_with_options(self, cli_runner, monkeypatch):
        calls = []
        monkeypatch.setattr("uvicorn.run", lambda target, **kw: calls.append((target, kw)))

        result = cli_runner.invoke(app, ["serve", "--port", "4321", "--host", "0.0.0.0"])

        assert result.exit_code == 0
        target, kwargs = calls[0]
        assert target.title == "AgentPRD"
        assert kwargs["host"] == "0.0.0.0"
        assert kwargs["port"] == 4321
        assert "Listening on http://0.0.0.0:4321/agent" in result.output

    def test_reload_uses_factory(self, cli_runner, monkeypatch):
        calls = []
        monkeypatch.setattr("uvicorn.run", lambda target, **kw: calls.append((target, kw)))

        cli_runner.invoke(app, ["serve", "--reload"])

        target, kwargs = calls[0]
        assert target == "agentprd.server.app:create_default_app"
        assert kwargs["factory"] is True
        assert kwargs["port"] == 3500


class TestChatCommand:
    def test_repl_by_default(self, cli_runner, monkeypatch):
        used = []

        async def fake_run(self):
            used.append(type(self).__name__)
            assert self.chat.show_reasoning is True

        monkeypatch.setattr("agentprd.cli.repl.ChatRepl.run", fake_run)
        result = cli_runner.invoke(app, ["chat", "--show-reasoning"])

        assert result.exit_code == 0
        assert used == ["ChatRepl"]

    def test_tui_flag(self, cli_runner, monkeypatch):
        used = []

        async def fake_run(self):
            used.append(type(self).__name__)

        monkeypatch.setattr("agentprd.cli.tui.ChatTUI.run", fake_run)
        result = cli_runner.invoke(app, ["chat", "--tui"])

        assert result.exit_code == 0
        assert used == ["ChatTUI"]


def test_json_output_is_parseable_for_small_configs(cli_runner):
    result = cli_runner.invoke(app, ["config", "show", "--format", "json"])
    start = result.output.index("{")
    data = json.loads(result.output[start:])
    assert data["agent"]["url"] == "http://127.0.0.1:3500/agent"
