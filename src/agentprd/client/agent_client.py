"""
HTTP client for the AgentPRD agent.

One POST per turn. The streamed body is decoded incrementally so callers
see text and tool events as they arrive; the session id and local history
are updated once the stream ends.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError

from agentprd.config.models import AgentConfig
from agentprd.exceptions import AgentCommunicationError, RateLimitError, RequestTimeoutError
from agentprd.protocol.decoder import DecodeResult, StreamDecoder
from agentprd.protocol.frames import Metadata, ToolEvent
from agentprd.server.schemas import AgentRequest, AgentResponse, RequestContext
from agentprd.session.history import ConversationHistory, generate_session_id
from agentprd.utils.logger import get_logger

logger = get_logger(__name__)

TIMEOUT_MESSAGE = "Request timed out. The agent may be overloaded."
RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please wait before trying again."
FAILURE_PREFIX = "Failed to communicate with AgentPRD"


@dataclass
class AgentReply:
    content: str
    session_id: str
    tool_events: List[ToolEvent] = field(default_factory=list)
    needs_approval: bool = False
    metadata: Optional[Metadata] = None
    active_tool_calls: List[str] = field(default_factory=list)
    error: Optional[str] = None


class AgentClient:
    """
    Talks to one agent endpoint and owns the client side of the session.

    Use as an async context manager, or call ``aclose()`` when done.
    """

    def __init__(
        self,
        config: AgentConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.session_id: Optional[str] = None
        self.history = ConversationHistory(window=config.history_window)
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> AgentClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                transport=self._transport,
                timeout=httpx.Timeout(self.config.timeout, connect=10.0),
            )
        return self._http

    async def aclose(self) -> None:
        if self._http is not None and not self._http.is_closed:
            await self._http.aclose()

    def clear_session(self) -> None:
        self.session_id = None
        self.history.clear()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "x-session-id": self.session_id or "",
        }
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key.get_secret_value()}"
        return headers

    def _payload(self, message: str, command: Optional[str]) -> Dict[str, Any]:
        if self.session_id is None:
            self.session_id = generate_session_id()
        request = AgentRequest(
            channel="cli",
            message=message,
            user_id=self.config.user_id,
            context=RequestContext(
                session_id=self.session_id,
                command=command,
                approval_mode=self.config.approval_mode,
                conversation_history=self.history.messages,
            ),
        )
        return request.to_wire()

    @staticmethod
    def _status_error(response: httpx.Response) -> AgentCommunicationError:
        if response.status_code == 429:
            return RateLimitError(RATE_LIMIT_MESSAGE, status_code=429)
        try:
            detail = response.text
        except httpx.ResponseNotRead:
            detail = ""
        return AgentCommunicationError(
            f"{FAILURE_PREFIX}: HTTP {response.status_code}: {response.reason_phrase}\n{detail}".rstrip(),
            status_code=response.status_code,
        )

    async def _post_stream(self, payload: Dict[str, Any], decoder: StreamDecoder) -> Optional[AgentResponse]:
        async with self.http.stream(
            "POST", self.config.url, json=payload, headers=self._headers()
        ) as response:
            if response.status_code >= 400:
                await response.aread()
                raise self._status_error(response)

            if "application/json" in response.headers.get("content-type", ""):
                data = json.loads(await response.aread())
                return AgentResponse.model_validate(data)

            async for chunk in response.aiter_bytes():
                decoder.feed(chunk)
        return None

    async def stream_message(
        self,
        message: str,
        command: Optional[str] = None,
        on_text: Optional[Callable[[str], None]] = None,
        on_tool_event: Optional[Callable[[ToolEvent], None]] = None,
    ) -> AgentReply:
        """
        Send one turn and stream the reply.

        Raises:
            RequestTimeoutError: The absolute deadline passed
            RateLimitError: The agent answered 429
            AgentCommunicationError: Any other transport failure
        """
        payload = self._payload(message, command)
        decoder = StreamDecoder(on_text=on_text, on_tool_event=on_tool_event)
        logger.debug("Sending message", session_id=self.session_id, command=command)

        try:
            json_reply = await asyncio.wait_for(
                self._post_stream(payload, decoder),
                timeout=self.config.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeoutError(TIMEOUT_MESSAGE, cause=e, partial_content=decoder.content) from e
        except AgentCommunicationError as e:
            e.partial_content = decoder.content
            raise
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            raise AgentCommunicationError(
                f"{FAILURE_PREFIX}: {e}", cause=e, partial_content=decoder.content
            ) from e

        if json_reply is not None:
            if on_text and json_reply.content:
                on_text(json_reply.content)
            return self._finish_json(message, json_reply)

        return self._finish_stream(message, decoder.finish())

    async def send_message(self, message: str, command: Optional[str] = None) -> AgentReply:
        """Send one turn and wait for the whole reply."""
        payload = self._payload(message, command)
        try:
            response = await self.http.post(
                self.config.url,
                json=payload,
                headers=self._headers(),
                timeout=self.config.timeout,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(TIMEOUT_MESSAGE, cause=e) from e
        except httpx.HTTPError as e:
            raise AgentCommunicationError(f"{FAILURE_PREFIX}: {e}", cause=e) from e

        if response.status_code >= 400:
            raise self._status_error(response)

        if "application/json" in response.headers.get("content-type", ""):
            try:
                reply = AgentResponse.model_validate(response.json())
            except (ValueError, ValidationError) as e:
                raise AgentCommunicationError(f"{FAILURE_PREFIX}: {e}", cause=e) from e
            return self._finish_json(message, reply)

        decoder = StreamDecoder()
        decoder.feed(response.content)
        return self._finish_stream(message, decoder.finish())

    def _finish_json(self, message: str, reply: AgentResponse) -> AgentReply:
        if reply.error:
            logger.warning("Agent reported an error", error=reply.error)
        self.session_id = reply.session_id or self.session_id or generate_session_id()
        self.history.record_turn(message, reply.content)
        return AgentReply(
            content=reply.content,
            session_id=self.session_id,
            needs_approval=reply.needs_approval,
            error=reply.error,
        )

    def _finish_stream(self, message: str, result: DecodeResult) -> AgentReply:
        metadata = result.metadata
        if metadata is None:
            # Degraded: new session, history is just this turn
            self.session_id = generate_session_id()
            self.history.clear()
            self.history.record_turn(message, result.content)
        else:
            self.session_id = metadata.session_id or self.session_id or generate_session_id()
            self.history.record_turn(message, result.content, metadata)

        return AgentReply(
            content=result.content,
            session_id=self.session_id,
            tool_events=result.tool_events,
            needs_approval=metadata.needs_approval if metadata else False,
            metadata=metadata,
            active_tool_calls=result.active_tool_calls,
        )


__all__ = [
    "AgentClient",
    "AgentReply",
    "TIMEOUT_MESSAGE",
    "RATE_LIMIT_MESSAGE",
    "FAILURE_PREFIX",
]
