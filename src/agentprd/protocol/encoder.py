"""
Server-side multiplexer.

Turns an async sequence of generation events into the response body:
text passes through untouched, every other event becomes a tool-event
frame, and one metadata frame closes the stream.
"""

from __future__ import annotations

import json
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Sequence

from agentprd.agent.events import (
    GenerationEvent,
    StepFinished,
    TextToken,
    ToolCallInvoked,
    ToolCallStarted,
    ToolResultReady,
)
from agentprd.protocol.frames import (
    METADATA_SENTINEL,
    TOOL_EVENT_SENTINEL,
    ConversationMessage,
    Metadata,
    ToolEvent,
    ToolEventKind,
    now_ms,
)
from agentprd.utils.logger import get_logger

logger = get_logger(__name__)

# Receives the full assistant text, returns the updated conversation
CompletionHook = Callable[[str], Awaitable[Sequence[ConversationMessage]]]


def _dumps(payload: dict) -> str:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def encode_text(token: str) -> bytes:
    return token.encode("utf-8")


def encode_tool_event(event: ToolEvent) -> bytes:
    return f"{TOOL_EVENT_SENTINEL}{_dumps(event.to_wire())}\n".encode("utf-8")


def encode_metadata(metadata: Metadata) -> bytes:
    return f"{METADATA_SENTINEL}{_dumps(metadata.to_wire())}".encode("utf-8")


def to_tool_event(event: GenerationEvent) -> Optional[ToolEvent]:
    """Map a non-text generation event to its wire record."""
    if isinstance(event, ToolCallStarted):
        return ToolEvent(
            type=ToolEventKind.CALL_START,
            tool_name=event.tool_name,
            tool_call_id=event.tool_call_id,
            timestamp=now_ms(),
        )
    if isinstance(event, ToolCallInvoked):
        return ToolEvent(
            type=ToolEventKind.CALL,
            tool_name=event.tool_name,
            args=event.args,
            tool_call_id=event.tool_call_id,
            timestamp=now_ms(),
        )
    if isinstance(event, ToolResultReady):
        return ToolEvent(
            type=ToolEventKind.RESULT,
            tool_name=event.tool_name,
            result=event.result,
            tool_call_id=event.tool_call_id,
            timestamp=now_ms(),
        )
    if isinstance(event, StepFinished):
        return ToolEvent(
            type=ToolEventKind.STEP_FINISH,
            is_continued=event.is_continued,
            timestamp=now_ms(),
        )
    return None


class StreamEncoder:
    """
    Encodes one turn into response body bytes.

    ``on_complete`` runs after generation finishes and before the metadata
    frame is written, so the metadata reflects the persisted state. If it
    raises, the error is logged and the metadata is built from
    ``fallback_history`` instead.
    """

    def __init__(
        self,
        session_id: str,
        history_window: int = 10,
        needs_approval: bool = False,
    ):
        self.session_id = session_id
        self.history_window = history_window
        self.needs_approval = needs_approval
        self.text = ""
        self.tool_events: List[ToolEvent] = []

    async def encode(
        self,
        events: AsyncIterator[GenerationEvent],
        on_complete: Optional[CompletionHook] = None,
        fallback_history: Sequence[ConversationMessage] = (),
    ) -> AsyncIterator[bytes]:
        parts: List[str] = []

        try:
            async for event in events:
                if isinstance(event, TextToken):
                    if not event.text:
                        continue
                    parts.append(event.text)
                    yield encode_text(event.text)
                    continue

                tool_event = to_tool_event(event)
                if tool_event is None:
                    logger.debug("Skipping unknown generation event", event=type(event).__name__)
                    continue
                self.tool_events.append(tool_event)
                yield encode_tool_event(tool_event)
        except Exception as e:
            logger.error(f"Generation failed mid-stream: {e}", session_id=self.session_id)
            raise

        self.text = "".join(parts)

        history: Sequence[ConversationMessage] = fallback_history
        if on_complete is not None:
            try:
                history = await on_complete(self.text)
            except Exception as e:
                # The answer has already streamed; continuity for this turn degrades
                logger.error(f"Failed to persist conversation: {e}", session_id=self.session_id)

        metadata = Metadata(
            session_id=self.session_id,
            conversation_history=list(history)[-self.history_window:],
            needs_approval=self.needs_approval,
        )
        yield encode_metadata(metadata)


__all__ = [
    "StreamEncoder",
    "CompletionHook",
    "encode_text",
    "encode_tool_event",
    "encode_metadata",
    "to_tool_event",
]
