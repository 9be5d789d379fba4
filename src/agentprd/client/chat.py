"""
Front-end independent chat state.

Both the line REPL and the full-screen TUI drive a ``ChatSession``: it owns
the visible message list, the streaming flag and the tool-call log, and turns
transport failures into something displayable instead of an exception.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Literal, Optional

from agentprd.client.agent_client import AgentClient, AgentReply
from agentprd.exceptions import AgentPRDError
from agentprd.protocol.decoder import ToolCallTracker
from agentprd.protocol.frames import ToolEvent, ToolEventKind, utc_now
from agentprd.protocol.reasoning import ReasoningDetector
from agentprd.session.history import generate_session_id
from agentprd.utils.logger import get_logger

logger = get_logger(__name__)

MessageKind = Literal["user", "agent", "system", "tool"]

APOLOGY = "Sorry, I encountered an error processing your request. Please try again."


class ChatBusyError(AgentPRDError):
    """Raised when a turn is sent while another is still streaming."""

    def __init__(self) -> None:
        super().__init__(
            "A response is still streaming",
            suggestion="Wait for the current response to finish",
        )


@dataclass
class ChatMessage:
    kind: MessageKind
    content: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    is_streaming: bool = False
    tool_event: Optional[ToolEvent] = None
    timestamp: datetime = field(default_factory=utc_now)


@dataclass
class TurnOutcome:
    reply: Optional[AgentReply] = None
    error: Optional[AgentPRDError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ChatSession:
    """
    UI state for one conversation.

    ``on_change`` is called after every state change (new message, text
    delta, tool event) so a front end can redraw.
    """

    def __init__(
        self,
        client: AgentClient,
        show_reasoning: bool = False,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.client = client
        self.show_reasoning = show_reasoning
        self.on_change = on_change
        self.messages: List[ChatMessage] = []
        self.tool_events: List[ToolEvent] = []
        self.tracker = ToolCallTracker()
        self.reasoning = ReasoningDetector(show_reasoning)
        self.is_streaming = False
        self.status_hint: Optional[str] = None

    @property
    def session_id(self) -> Optional[str]:
        return self.client.session_id

    @property
    def active_tool_count(self) -> int:
        return self.tracker.running_count

    def _changed(self) -> None:
        if self.on_change:
            self.on_change()

    def add_message(self, kind: MessageKind, content: str, **kwargs) -> ChatMessage:
        message = ChatMessage(kind=kind, content=content, **kwargs)
        self.messages.append(message)
        self._changed()
        return message

    def add_system(self, content: str) -> ChatMessage:
        return self.add_message("system", content)

    def set_show_reasoning(self, enabled: bool) -> None:
        self.show_reasoning = enabled
        self.reasoning.show_reasoning = enabled

    def clear(self) -> None:
        """Forget messages and start a new session."""
        self.messages.clear()
        self.tool_events.clear()
        self.tracker.reset()
        self.client.clear_session()
        self._changed()

    async def send(self, text: str, command: Optional[str] = None) -> TurnOutcome:
        """
        Run one turn.

        Never raises for transport failures; the error is returned in the
        outcome after the UI state has been repaired.

        Raises:
            ChatBusyError: A turn is already in flight
        """
        if self.is_streaming:
            raise ChatBusyError()

        self.add_message("user", text)
        placeholder = self.add_message("agent", "", is_streaming=True)
        self.is_streaming = True
        self.tracker.reset()
        self.reasoning.reset()

        def on_text(chunk: str) -> None:
            update = self.reasoning.process(chunk)
            self.status_hint = update.hint
            if update.finished_block and self.show_reasoning:
                self.messages.insert(
                    self.messages.index(placeholder),
                    ChatMessage(kind="system", content=update.finished_block),
                )
            if update.visible:
                placeholder.content += update.visible
            self._changed()

        def on_tool_event(event: ToolEvent) -> None:
            self.tool_events.append(event)
            self.tracker.observe(event)
            if event.type == ToolEventKind.RESULT:
                self.messages.insert(
                    self.messages.index(placeholder),
                    ChatMessage(kind="tool", content=event.tool_name or "tool", tool_event=event),
                )
            self._changed()

        try:
            reply = await self.client.stream_message(
                text, command=command, on_text=on_text, on_tool_event=on_tool_event
            )
        except AgentPRDError as e:
            self._fail(placeholder, getattr(e, "partial_content", "") or placeholder.content)
            return TurnOutcome(error=e)
        finally:
            self.is_streaming = False
            self.status_hint = None

        placeholder.content = reply.content
        placeholder.is_streaming = False
        if reply.error:
            self.add_system(reply.error)
        self._changed()
        return TurnOutcome(reply=reply)

    def _fail(self, placeholder: ChatMessage, partial: str) -> None:
        if partial:
            placeholder.content = partial
            placeholder.is_streaming = False
        else:
            self.messages.remove(placeholder)
        self.client.session_id = generate_session_id()
        logger.warning("Turn failed; starting a fresh session", session_id=self.client.session_id)
        self.add_system(APOLOGY)


__all__ = ["ChatSession", "ChatMessage", "ChatBusyError", "TurnOutcome", "APOLOGY"]
