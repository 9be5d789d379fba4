"""
OpenAI client wrapper for AgentPRD.

Provides async OpenAI API access with connection pooling, rate limiting,
retry logic, and graceful error handling.
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import httpx
from openai import (
    AsyncOpenAI,
    APIConnectionError,
    APITimeoutError,
    AuthenticationError,
    RateLimitError,
)
from openai.types.chat import ChatCompletionChunk

from agentprd.config.models import LLMProviderConfig
from agentprd.exceptions import LLMError
from agentprd.llm.models import (
    ChatMessage,
    StreamingChunk,
    ToolCallDelta,
    Usage,
)
from agentprd.utils.async_utils import retry_with_backoff, timeout
from agentprd.utils.logger import get_logger

logger = get_logger(__name__)

RETRYABLE_ERRORS = (RateLimitError, APITimeoutError, APIConnectionError, httpx.TimeoutException)


class OpenAIClient:
    """
    Async OpenAI client used by the agent loop.

    Features:
    - Connection pooling with httpx
    - Rate limiting with semaphore
    - Retries with exponential backoff on opening a stream
    """

    def __init__(
        self,
        config: LLMProviderConfig,
        max_concurrent_requests: int = 10,
    ):
        self.config = config
        self.max_concurrent_requests = max_concurrent_requests

        api_key = self._get_api_key()

        self.http_client = httpx.AsyncClient(
            limits=httpx.Limits(
                max_keepalive_connections=25,
                max_connections=100,
                keepalive_expiry=30,
            ),
            timeout=httpx.Timeout(
                timeout=float(config.timeout),
                connect=5.0,
            ),
        )

        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=config.base_url,
            http_client=self.http_client,
            max_retries=0,  # We handle retries ourselves
        )

        self.semaphore = asyncio.Semaphore(max_concurrent_requests)

        logger.info(
            "OpenAI client initialized",
            model=config.model,
            max_concurrent=max_concurrent_requests,
            timeout=config.timeout,
        )

    def _get_api_key(self) -> str:
        """
        Raises:
            LLMError: If no API key is configured
        """
        if self.config.api_key:
            return self.config.api_key.get_secret_value()

        raise LLMError(
            "OpenAI API key not found",
            provider="openai",
            suggestion="Set OPENAI_API_KEY in environment or .env file"
        )

    async def __aenter__(self) -> OpenAIClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @retry_with_backoff(max_attempts=3, retry_on=RETRYABLE_ERRORS)
    @timeout(30.0)
    async def _open_stream(self, params: Dict[str, Any]) -> Any:
        try:
            return await self.client.chat.completions.create(**params)
        except AuthenticationError as e:
            raise LLMError(
                f"Authentication failed: {str(e)}",
                provider="openai",
                suggestion="Check your API key is valid"
            )
        except RETRYABLE_ERRORS as e:
            logger.warning(f"Retryable OpenAI error: {e}")
            raise

    async def chat_completion_stream(
        self,
        messages: List[Union[ChatMessage, Dict[str, Any]]],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs: Any,
    ) -> AsyncIterator[StreamingChunk]:
        """
        Create a streaming chat completion.

        Opening the stream is retried; once tokens have started flowing a
        failure is raised as ``LLMError`` so nothing is emitted twice.

        Yields:
            StreamingChunk objects with incremental content and tool-call deltas
        """
        message_dicts = [
            msg.to_dict() if isinstance(msg, ChatMessage) else msg
            for msg in messages
        ]

        params: Dict[str, Any] = {
            "model": model or self.config.model,
            "messages": message_dicts,
            "temperature": self.config.temperature if temperature is None else temperature,
            "stream": True,
            "stream_options": {"include_usage": True},
            **kwargs,
        }
        if tools:
            params["tools"] = tools

        async with self.semaphore:
            logger.debug(
                "Starting streaming chat completion",
                model=params["model"],
                messages=len(message_dicts),
                has_tools=bool(tools),
            )
            try:
                stream = await self._open_stream(params)
            except LLMError:
                raise
            except Exception as e:
                raise LLMError(f"OpenAI streaming failed: {str(e)}", provider="openai")

            try:
                async for chunk in stream:
                    yield self._parse_stream_chunk(chunk)
            except Exception as e:
                logger.error(f"OpenAI streaming error: {e}")
                raise LLMError(f"OpenAI streaming failed: {str(e)}", provider="openai")

    def _parse_stream_chunk(self, chunk: ChatCompletionChunk) -> StreamingChunk:
        content = None
        finish_reason = None
        tool_calls: List[ToolCallDelta] = []

        if chunk.choices:
            choice = chunk.choices[0]
            content = choice.delta.content or None
            finish_reason = choice.finish_reason
            for tc in choice.delta.tool_calls or []:
                tool_calls.append(
                    ToolCallDelta(
                        index=tc.index,
                        id=tc.id,
                        name=tc.function.name if tc.function else None,
                        arguments=(tc.function.arguments or "") if tc.function else "",
                    )
                )

        usage = None
        if getattr(chunk, 'usage', None):
            usage = Usage(
                prompt_tokens=chunk.usage.prompt_tokens,
                completion_tokens=chunk.usage.completion_tokens,
                total_tokens=chunk.usage.total_tokens,
            )

        return StreamingChunk(
            id=chunk.id,
            model=chunk.model,
            content=content,
            finish_reason=finish_reason,
            tool_calls=tool_calls,
            usage=usage,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if not self.http_client.is_closed:
            await self.http_client.aclose()
            logger.debug("OpenAI HTTP client closed")


__all__ = ["OpenAIClient", "RETRYABLE_ERRORS"]
