"""Tests for the HTTP agent client, using httpx mock transports."""

import asyncio
import json
from typing import List

import httpx
import pytest

from agentprd.client.agent_client import (
    FAILURE_PREFIX,
    RATE_LIMIT_MESSAGE,
    TIMEOUT_MESSAGE,
    AgentClient,
)
from agentprd.config.models import AgentConfig
from agentprd.exceptions import AgentCommunicationError, RateLimitError, RequestTimeoutError
from agentprd.protocol.frames import ToolEvent, ToolEventKind

from conftest import build_body, sample_metadata

STREAM_HEADERS = {"content-type": "text/plain; charset=utf-8"}


class RecordingAgent:
    """Mock transport handler returning queued responses and keeping requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    def payload(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


def streamed(*parts) -> httpx.Response:
    return httpx.Response(200, headers=STREAM_HEADERS, content=build_body(*parts))


def make_client(mock_config, handler) -> AgentClient:
    return AgentClient(mock_config.agent, transport=httpx.MockTransport(handler))


class TestStreamMessage:
    @pytest.mark.asyncio
    async def test_request_shape(self, mock_config):
        agent = RecordingAgent(streamed("ok", sample_metadata("server-1")))
        async with make_client(mock_config, agent) as client:
            await client.stream_message("Build a PRD", command="create-prd")

        request = agent.requests[0]
        payload = agent.payload()
        assert request.url == "http://agent.test/agent"
        assert request.headers["authorization"] == "Bearer client-token"
        assert request.headers["content-type"] == "application/json"
        assert request.headers["x-session-id"].startswith("cli-")
        assert payload["channel"] == "cli"
        assert payload["message"] == "Build a PRD"
        assert payload["userId"] == "tester"
        assert payload["context"]["sessionId"] == request.headers["x-session-id"]
        assert payload["context"]["command"] == "create-prd"
        assert payload["context"]["approvalMode"] == "suggest"
        assert payload["context"]["conversationHistory"] == []

    @pytest.mark.asyncio
    async def test_streams_text_and_tool_events(self, mock_config):
        texts: List[str] = []
        events: List[ToolEvent] = []
        agent = RecordingAgent(streamed(
            "Hello ",
            ToolEvent(type=ToolEventKind.CALL_START, tool_name="store_prd", tool_call_id="c1"),
            "world",
            sample_metadata("session_1"),
        ))

        async with make_client(mock_config, agent) as client:
            reply = await client.stream_message("hi", on_text=texts.append, on_tool_event=events.append)

        assert "".join(texts) == "Hello world"
        assert reply.content == "Hello world"
        assert reply.session_id == "session_1"
        assert [e.tool_name for e in reply.tool_events] == ["store_prd"]
        assert events == reply.tool_events
        assert reply.active_tool_calls == ["c1"]
        assert client.session_id == "session_1"

    @pytest.mark.asyncio
    async def test_server_history_is_adopted_and_resent(self, mock_config):
        agent = RecordingAgent(
            streamed("a", sample_metadata("s1", pairs=2)),
            streamed("b", sample_metadata("s1", pairs=3)),
        )
        async with make_client(mock_config, agent) as client:
            await client.stream_message("first")
            assert [m.content for m in client.history] == ["question 0", "answer 0", "question 1", "answer 1"]
            await client.stream_message("second")

        second = agent.payload(1)
        assert second["context"]["sessionId"] == "s1"
        assert len(second["context"]["conversationHistory"]) == 4
        assert agent.requests[1].headers["x-session-id"] == "s1"

    @pytest.mark.asyncio
    async def test_missing_metadata_starts_fresh_session(self, mock_config):
        agent = RecordingAgent(
            streamed("a", sample_metadata("s1", pairs=2)),
            streamed("no metadata here"),
        )
        async with make_client(mock_config, agent) as client:
            await client.stream_message("first")
            reply = await client.stream_message("second")

        assert reply.metadata is None
        assert reply.session_id.startswith("cli-")
        assert [(m.role, m.content) for m in client.history] == [
            ("user", "second"),
            ("assistant", "no metadata here"),
        ]

    @pytest.mark.asyncio
    async def test_json_reply(self, mock_config):
        texts: List[str] = []
        agent = RecordingAgent(httpx.Response(200, json={"content": "Hi!", "sessionId": "session_9", "needsApproval": True}))

        async with make_client(mock_config, agent) as client:
            reply = await client.stream_message("hello", on_text=texts.append)

        assert texts == ["Hi!"]
        assert reply.session_id == "session_9"
        assert reply.needs_approval is True
        assert [m.content for m in client.history] == ["hello", "Hi!"]

    @pytest.mark.asyncio
    async def test_rate_limit(self, mock_config):
        agent = RecordingAgent(httpx.Response(429, text="slow down"))
        async with make_client(mock_config, agent) as client:
            with pytest.raises(RateLimitError) as exc_info:
                await client.stream_message("hi")

        assert exc_info.value.message == RATE_LIMIT_MESSAGE
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_http_error_status(self, mock_config):
        agent = RecordingAgent(httpx.Response(500, text="database exploded"))
        async with make_client(mock_config, agent) as client:
            with pytest.raises(AgentCommunicationError) as exc_info:
                await client.stream_message("hi")

        error = exc_info.value
        assert not isinstance(error, RateLimitError)
        assert error.status_code == 500
        assert error.message.startswith(f"{FAILURE_PREFIX}: HTTP 500: Internal Server Error")
        assert "database exploded" in error.message

    @pytest.mark.asyncio
    async def test_connection_failure(self, mock_config):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(mock_config, refuse) as client:
            with pytest.raises(AgentCommunicationError) as exc_info:
                await client.stream_message("hi")

        assert exc_info.value.message.startswith(FAILURE_PREFIX)
        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_mid_stream_failure_keeps_partial_content(self, mock_config):
        async def body():
            yield b"partial "
            yield b"answer"
            raise httpx.ReadError("connection reset")

        agent = RecordingAgent(httpx.Response(200, headers=STREAM_HEADERS, content=body()))
        async with make_client(mock_config, agent) as client:
            with pytest.raises(AgentCommunicationError) as exc_info:
                await client.stream_message("hi")

        assert exc_info.value.partial_content == "partial answer"

    @pytest.mark.asyncio
    async def test_read_timeout_becomes_timeout_error(self, mock_config):
        async def body():
            yield b"so far"
            raise httpx.ReadTimeout("read timed out")

        agent = RecordingAgent(httpx.Response(200, headers=STREAM_HEADERS, content=body()))
        async with make_client(mock_config, agent) as client:
            with pytest.raises(RequestTimeoutError) as exc_info:
                await client.stream_message("hi")

        assert exc_info.value.message == TIMEOUT_MESSAGE
        assert exc_info.value.partial_content == "so far"

    @pytest.mark.asyncio
    async def test_absolute_deadline(self):
        async def body():
            yield b"slow"
            await asyncio.sleep(5)
            yield b" never"

        agent = RecordingAgent(httpx.Response(200, headers=STREAM_HEADERS, content=body()))
        config = AgentConfig(url="http://agent.test/agent", timeout=1)
        async with AgentClient(config, transport=httpx.MockTransport(agent)) as client:
            with pytest.raises(RequestTimeoutError) as exc_info:
                await client.stream_message("hi")

        assert exc_info.value.partial_content == "slow"


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_streamed_body_is_decoded_whole(self, mock_config):
        agent = RecordingAgent(streamed("Full answer", sample_metadata("s5")))
        async with make_client(mock_config, agent) as client:
            reply = await client.send_message("hi")

        assert reply.content == "Full answer"
        assert reply.session_id == "s5"

    @pytest.mark.asyncio
    async def test_json_body(self, mock_config):
        agent = RecordingAgent(httpx.Response(200, json={"content": "Hi", "sessionId": "s6", "error": "partial outage"}))
        async with make_client(mock_config, agent) as client:
            reply = await client.send_message("hi")

        assert reply.error == "partial outage"
        assert client.session_id == "s6"

    @pytest.mark.asyncio
    async def test_status_error(self, mock_config):
        agent = RecordingAgent(httpx.Response(429))
        async with make_client(mock_config, agent) as client:
            with pytest.raises(RateLimitError):
                await client.send_message("hi")


class TestSessionLifecycle:
    @pytest.mark.asyncio
    async def test_clear_session(self, mock_config):
        agent = RecordingAgent(streamed("a", sample_metadata("s1")))
        async with make_client(mock_config, agent) as client:
            await client.stream_message("hi")
            client.clear_session()

            assert client.session_id is None
            assert len(client.history) == 0

    @pytest.mark.asyncio
    async def test_no_auth_header_without_token(self):
        agent = RecordingAgent(streamed("a", sample_metadata()))
        config = AgentConfig(url="http://agent.test/agent")
        async with AgentClient(config, transport=httpx.MockTransport(agent)) as client:
            await client.stream_message("hi")

        assert "authorization" not in agent.requests[0].headers
