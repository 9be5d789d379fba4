"""
Pytest configuration and fixtures for AgentPRD testing.

Provides:
- Configuration objects with test credentials
- A scripted chat model standing in for OpenAI
- In-memory key-value storage
- Helpers to build response bodies and split them into chunks
- CLI runner and captured rich console
"""

from __future__ import annotations

import os
from io import StringIO
from typing import Any, AsyncIterator, Dict, Iterator, List, Optional, Sequence
from unittest.mock import patch

import pytest
from faker import Faker
from pydantic import SecretStr
from rich.console import Console
from typer.testing import CliRunner

from agentprd.cli.theme import agentprd_theme
from agentprd.config import clear_config
from agentprd.config.models import AgentConfig, ApplicationConfig, Config, LLMProviderConfig, ServerConfig
from agentprd.llm.models import ChatMessage, StreamingChunk, ToolCallDelta
from agentprd.protocol.encoder import encode_metadata, encode_text, encode_tool_event
from agentprd.protocol.frames import ConversationMessage, Metadata, ToolEvent, ToolEventKind
from agentprd.storage.kv import InMemoryKeyValueStore
from agentprd.utils.console import console

fake = Faker()


class ScriptedLLM:
    """
    Chat model that replays one list of chunks per call.

    Each call to ``chat_completion_stream`` consumes the next script entry and
    records the messages and tools it was given.
    """

    def __init__(self, steps: Sequence[Sequence[StreamingChunk]], fail_after: Optional[int] = None):
        self.steps = [list(s) for s in steps]
        self.calls: List[Dict[str, Any]] = []
        self.fail_after = fail_after

    async def chat_completion_stream(
        self,
        messages: List[ChatMessage],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs: Any,
    ) -> AsyncIterator[StreamingChunk]:
        self.calls.append({"messages": list(messages), "tools": tools})
        script = self.steps[len(self.calls) - 1] if len(self.calls) <= len(self.steps) else []
        for i, chunk in enumerate(script):
            if self.fail_after is not None and i >= self.fail_after:
                raise RuntimeError("model connection dropped")
            yield chunk


def text_chunks(*parts: str, finish: str = "stop") -> List[StreamingChunk]:
    chunks = [StreamingChunk(content=p) for p in parts]
    chunks.append(StreamingChunk(finish_reason=finish))
    return chunks


def tool_call_chunks(call_id: str, name: str, arguments: str, index: int = 0) -> List[StreamingChunk]:
    """A tool call streamed as name first, then arguments in two pieces."""
    half = len(arguments) // 2
    return [
        StreamingChunk(tool_calls=[ToolCallDelta(index=index, id=call_id, name=name)]),
        StreamingChunk(tool_calls=[ToolCallDelta(index=index, arguments=arguments[:half])]),
        StreamingChunk(tool_calls=[ToolCallDelta(index=index, arguments=arguments[half:])]),
        StreamingChunk(finish_reason="tool_calls"),
    ]


def build_body(*parts: Any) -> bytes:
    """Assemble a response body from text, ToolEvent and Metadata parts."""
    out = b""
    for part in parts:
        if isinstance(part, str):
            out += encode_text(part)
        elif isinstance(part, ToolEvent):
            out += encode_tool_event(part)
        elif isinstance(part, Metadata):
            out += encode_metadata(part)
        else:
            out += part
    return out


def sample_metadata(session_id: str = "s1", pairs: int = 1) -> Metadata:
    history = []
    for i in range(pairs):
        history.append(ConversationMessage(role="user", content=f"question {i}"))
        history.append(ConversationMessage(role="assistant", content=f"answer {i}"))
    return Metadata(session_id=session_id, conversation_history=history)


def chunked(data: bytes, size: int) -> Iterator[bytes]:
    for i in range(0, len(data), size):
        yield data[i:i + size]


@pytest.fixture
def mock_config(tmp_path) -> Config:
    """Complete configuration with test credentials and a temp store dir."""
    return Config(
        agent=AgentConfig(
            url="http://agent.test/agent",
            api_key=SecretStr("client-token"),
            timeout=5,
            user_id="tester",
        ),
        server=ServerConfig(
            store_dir=tmp_path / "store",
            kv_namespace="agentprd-test",
            max_steps=3,
        ),
        llm=LLMProviderConfig(
            api_key=SecretStr("test-api-key-123"),
            model="gpt-4o-mini",
            timeout=30,
            max_retries=3,
        ),
        app=ApplicationConfig(debug=False, log_level="WARNING"),
    )


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def tool_event_call() -> ToolEvent:
    return ToolEvent(
        type=ToolEventKind.CALL,
        tool_name="store_prd",
        args={"title": fake.catch_phrase()},
        tool_call_id="call_1",
        timestamp=1718000000000,
    )


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def mock_console() -> Iterator[Console]:
    """Rich console writing to a buffer instead of the terminal."""
    buffer = StringIO()
    test_console = Console(file=buffer, force_terminal=False, width=100, theme=agentprd_theme)
    with patch.object(console, "_console", test_console):
        yield test_console


@pytest.fixture
def console_output(mock_console: Console):
    """Callable returning everything printed so far."""
    return lambda: mock_console.file.getvalue()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch) -> Iterator[None]:
    """Keep tests away from the user's real config files and environment."""
    for var in list(os.environ):
        if var.startswith(("AGENTPRD_", "LLM_")) or var in ("OPENAI_API_KEY", "NO_COLOR"):
            monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    clear_config()
    yield
    clear_config()
