"""
ProductOrchestrator: handles one agent request from parsing to response.

JSON requests get the multiplexed streaming body; any other content type
gets a single JSON response once generation has finished.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from pydantic import ValidationError

from agentprd.agent.events import GenerationEvent, TextToken
from agentprd.agent.generation import ChatModel, ToolLoopGenerator
from agentprd.agent.prompts import get_system_prompt
from agentprd.config.models import Config
from agentprd.exceptions import StorageError
from agentprd.protocol.encoder import StreamEncoder
from agentprd.protocol.frames import ConversationMessage, utc_now
from agentprd.server.schemas import AgentRequest, AgentResponse, RequestContext
from agentprd.session.history import ConversationHistory, generate_server_session_id
from agentprd.storage.kv import KeyValueStore
from agentprd.storage.session_store import ConversationContext, SessionStore
from agentprd.tools import build_registry
from agentprd.utils.logger import get_logger

logger = get_logger(__name__)

JSON_CONTENT_TYPE = "application/json"
ERROR_REPLY = "Sorry, there was an error processing your request."
STORED_MESSAGE_LIMIT = 100

WELCOME = {
    "welcome": "Welcome to AgentPRD! I'm your AI Product Manager assistant.",
    "prompts": [
        {"data": "/create-prd mobile analytics app", "contentType": "text/plain"},
        {"data": "/help", "contentType": "text/plain"},
    ],
}


def is_json(content_type: Optional[str]) -> bool:
    return (content_type or "").split(";")[0].strip().lower() == JSON_CONTENT_TYPE


def split_command(message: str) -> tuple[Optional[str], str]:
    """``"/create-prd mobile app"`` -> ``("create-prd", "mobile app")``."""
    if not message.startswith("/"):
        return None, message
    name, _, rest = message[1:].partition(" ")
    return name, rest


@dataclass
class Turn:
    request: AgentRequest
    session_id: str
    command: Optional[str]
    message: str
    history: ConversationHistory
    prompt_messages: List[Dict[str, str]]


class ProductOrchestrator:
    """
    Runs a turn: resolve the session, build the prompt, drive the model and
    persist the conversation.
    """

    def __init__(self, config: Config, kv: KeyValueStore, llm: ChatModel):
        self.config = config
        self.kv = kv
        self.llm = llm
        self.sessions = SessionStore(kv, config.server.kv_namespace)

    @staticmethod
    def parse_request(body: bytes, content_type: Optional[str]) -> AgentRequest:
        """Never raises: bad JSON degrades to a "Hello" request."""
        if not is_json(content_type):
            return AgentRequest(message=body.decode("utf-8", errors="replace"))

        try:
            data = json.loads(body or b"{}")
            if not isinstance(data, dict):
                raise ValueError("request body is not an object")
            request = AgentRequest.model_validate(data)
            if not request.message:
                request.message = "Hello"
            return request
        except (ValueError, ValidationError) as e:
            logger.warning(f"Unreadable request body, using default message: {e}")
            return AgentRequest(message="Hello")

    async def prepare_turn(self, request: AgentRequest) -> Turn:
        context = request.context or RequestContext()
        session_id = context.session_id or generate_server_session_id()
        message = request.message
        command = context.command
        if not command:
            command, message = split_command(message)

        logger.info("Processing", command=command, preview=message[:50], session_id=session_id)

        messages: Sequence[ConversationMessage] = context.conversation_history
        if messages:
            logger.info("Using client conversation history", message_count=len(messages))
        else:
            stored = await self.sessions.load(session_id)
            if stored is not None:
                messages = stored.messages
                logger.info("Loaded conversation from storage", message_count=len(messages))
            else:
                logger.info("Starting new conversation", session_id=session_id)

        history = ConversationHistory(messages, window=STORED_MESSAGE_LIMIT)
        history.add("user", message)

        prompt_messages = [
            {"role": m.role, "content": m.content.strip()}
            for m in history
            if m.content.strip()
        ]
        if not prompt_messages:
            prompt_messages = [{"role": "user", "content": message or "Hello"}]

        return Turn(request, session_id, command, message, history, prompt_messages)

    def _generator(self, turn: Turn) -> ToolLoopGenerator:
        registry = build_registry(self.kv, self.config.server.kv_namespace, turn.request.user_id)
        return ToolLoopGenerator(self.llm, registry, max_steps=self.config.server.max_steps)

    def _events(self, turn: Turn) -> AsyncIterator[GenerationEvent]:
        return self._generator(turn).generate(get_system_prompt(turn.command), turn.prompt_messages)

    async def _persist(self, turn: Turn, reply: str) -> List[ConversationMessage]:
        """Record the reply and save the conversation; a failed save only loses the stored copy."""
        turn.history.add("assistant", reply)
        try:
            await self.sessions.save(
                ConversationContext(
                    session_id=turn.session_id,
                    messages=turn.history.messages,
                    user_id=turn.request.user_id,
                )
            )
        except StorageError as e:
            logger.error(f"Failed to save conversation: {e}", session_id=turn.session_id)
        return turn.history.messages

    async def stream_turn(self, request: AgentRequest) -> AsyncIterator[bytes]:
        """Encoded response body for the streaming path."""
        turn = await self.prepare_turn(request)
        encoder = StreamEncoder(turn.session_id, history_window=self.config.server.history_window)

        async def on_complete(text: str) -> List[ConversationMessage]:
            return await self._persist(turn, text)

        async for chunk in encoder.encode(
            self._events(turn),
            on_complete=on_complete,
            fallback_history=turn.history.messages,
        ):
            yield chunk

    async def complete_turn(self, request: AgentRequest) -> AgentResponse:
        """Non-streaming path: collect the reply, persist it and return JSON."""
        try:
            turn = await self.prepare_turn(request)
            parts: List[str] = []
            async for event in self._events(turn):
                if isinstance(event, TextToken):
                    parts.append(event.text)
            reply = "".join(parts)
            await self._persist(turn, reply)
            return AgentResponse(content=reply, session_id=turn.session_id, needs_approval=False)
        except Exception as e:
            logger.exception(f"Error processing request: {e}")
            return AgentResponse(
                content=ERROR_REPLY,
                session_id=generate_server_session_id(),
                error="Processing error",
            )

    @staticmethod
    def welcome() -> Dict[str, Any]:
        return dict(WELCOME, timestamp=utc_now().isoformat())


__all__ = ["ProductOrchestrator", "Turn", "split_command", "is_json", "ERROR_REPLY", "WELCOME"]
