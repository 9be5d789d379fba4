"""
Tests for the OpenAI streaming client wrapper.

The OpenAI SDK is never called over the network: ``client.chat.completions.create``
is replaced with an AsyncMock returning scripted chunk streams.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from openai import AuthenticationError
from openai.types.chat import ChatCompletionChunk
from openai.types.chat.chat_completion_chunk import (
    Choice,
    ChoiceDelta,
    ChoiceDeltaToolCall,
    ChoiceDeltaToolCallFunction,
)
from openai.types.completion_usage import CompletionUsage
from pydantic import SecretStr

from agentprd.config.models import LLMProviderConfig
from agentprd.exceptions import LLMError
from agentprd.llm.models import ChatMessage, MessageRole, ToolCall
from agentprd.llm.openai_client import OpenAIClient


def make_chunk(content=None, tool_call=None, finish_reason=None, usage=None, choices=True):
    delta = ChoiceDelta(content=content, tool_calls=[tool_call] if tool_call else None)
    return ChatCompletionChunk(
        id="chunk-1",
        object="chat.completion.chunk",
        created=1718000000,
        model="gpt-4o-mini",
        choices=[Choice(index=0, delta=delta, finish_reason=finish_reason)] if choices else [],
        usage=usage,
    )


async def stream_of(*chunks):
    for chunk in chunks:
        yield chunk


@pytest.fixture
def llm_config():
    return LLMProviderConfig(api_key=SecretStr("test-api-key"), model="gpt-4o-mini", timeout=30)


@pytest_asyncio.fixture
async def client(llm_config):
    openai_client = OpenAIClient(llm_config)
    yield openai_client
    await openai_client.close()


class TestInitialization:
    def test_missing_api_key(self):
        with pytest.raises(LLMError) as exc_info:
            OpenAIClient(LLMProviderConfig(api_key=None))
        assert "OPENAI_API_KEY" in exc_info.value.suggestion

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, llm_config):
        async with OpenAIClient(llm_config) as openai_client:
            pass
        assert openai_client.http_client.is_closed
        await openai_client.close()


class TestChunkParsing:
    @pytest.mark.asyncio
    async def test_text_chunk(self, client):
        parsed = client._parse_stream_chunk(make_chunk(content="Hello"))
        assert parsed.content == "Hello"
        assert parsed.tool_calls == []
        assert parsed.model == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_empty_content_is_none(self, client):
        assert client._parse_stream_chunk(make_chunk(content="")).content is None

    @pytest.mark.asyncio
    async def test_tool_call_fragment(self, client):
        fragment = ChoiceDeltaToolCall(
            index=1,
            id="call_9",
            type="function",
            function=ChoiceDeltaToolCallFunction(name="list_prds", arguments='{"lim'),
        )
        parsed = client._parse_stream_chunk(make_chunk(tool_call=fragment))

        delta = parsed.tool_calls[0]
        assert (delta.index, delta.id, delta.name, delta.arguments) == (1, "call_9", "list_prds", '{"lim')

    @pytest.mark.asyncio
    async def test_usage_only_chunk(self, client):
        usage = CompletionUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15)
        parsed = client._parse_stream_chunk(make_chunk(choices=False, usage=usage))

        assert parsed.content is None
        assert parsed.usage.total_tokens == 15


class TestStreaming:
    @pytest.mark.asyncio
    async def test_streams_chunks_and_sends_tools(self, client):
        client.client.chat.completions.create = AsyncMock(return_value=stream_of(
            make_chunk(content="Hel"),
            make_chunk(content="lo"),
            make_chunk(finish_reason="stop"),
        ))
        tools = [{"type": "function", "function": {"name": "list_prds", "parameters": {}}}]
        messages = [ChatMessage(role=MessageRole.USER, content="hi"), {"role": "system", "content": "sys"}]

        chunks = [c async for c in client.chat_completion_stream(messages, tools=tools)]

        assert "".join(c.content or "" for c in chunks) == "Hello"
        assert chunks[-1].finish_reason == "stop"
        params = client.client.chat.completions.create.call_args.kwargs
        assert params["stream"] is True
        assert params["model"] == "gpt-4o-mini"
        assert params["tools"] == tools
        assert params["messages"] == [{"role": "user", "content": "hi"}, {"role": "system", "content": "sys"}]

    @pytest.mark.asyncio
    async def test_no_tools_key_without_tools(self, client):
        client.client.chat.completions.create = AsyncMock(return_value=stream_of())
        [c async for c in client.chat_completion_stream([{"role": "user", "content": "x"}])]
        assert "tools" not in client.client.chat.completions.create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_authentication_error(self, client):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        error = AuthenticationError("invalid key", response=httpx.Response(401, request=request), body=None)
        client.client.chat.completions.create = AsyncMock(side_effect=error)

        with pytest.raises(LLMError, match="Authentication failed"):
            [c async for c in client.chat_completion_stream([{"role": "user", "content": "x"}])]
        assert client.client.chat.completions.create.await_count == 1

    @pytest.mark.asyncio
    async def test_other_open_errors_wrapped(self, client):
        client.client.chat.completions.create = AsyncMock(side_effect=ValueError("bad request"))

        with pytest.raises(LLMError, match="bad request"):
            [c async for c in client.chat_completion_stream([{"role": "user", "content": "x"}])]

    @pytest.mark.asyncio
    async def test_mid_stream_failure(self, client):
        async def broken():
            yield make_chunk(content="partial")
            raise httpx.ReadError("connection reset")

        client.client.chat.completions.create = AsyncMock(return_value=broken())
        received = []

        with pytest.raises(LLMError, match="connection reset"):
            async for chunk in client.chat_completion_stream([{"role": "user", "content": "x"}]):
                received.append(chunk.content)

        assert received == ["partial"]
        assert client.client.chat.completions.create.await_count == 1


class TestMessages:
    def test_to_dict_with_tool_calls(self):
        message = ChatMessage(
            role=MessageRole.ASSISTANT,
            tool_calls=[ToolCall(id="call_1", function={"name": "get_prd", "arguments": "{}"})],
        )
        data = message.to_dict()

        assert data["role"] == "assistant"
        assert data["content"] is None
        assert data["tool_calls"][0]["function"]["name"] == "get_prd"

    def test_tool_result_message(self):
        data = ChatMessage(role=MessageRole.TOOL, content="{}", tool_call_id="call_1").to_dict()
        assert data == {"role": "tool", "content": "{}", "tool_call_id": "call_1"}
