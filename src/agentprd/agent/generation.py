"""
Model/tool loop.

Streams a chat completion, runs any tools the model asks for, feeds the
results back and repeats until the model answers without tools or the step
limit is reached. Everything observable is yielded as a generation event.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Sequence

from agentprd.agent.events import (
    GenerationEvent,
    StepFinished,
    TextToken,
    ToolCallInvoked,
    ToolCallStarted,
    ToolResultReady,
)
from agentprd.llm.models import ChatMessage, MessageRole, StreamingChunk, ToolCall
from agentprd.tools.base import ToolRegistry
from agentprd.utils.logger import get_logger

logger = get_logger(__name__)


class ChatModel(Protocol):
    def chat_completion_stream(
        self,
        messages: List[ChatMessage],
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> AsyncIterator[StreamingChunk]: ...


@dataclass
class _PendingCall:
    id: str
    name: str = ""
    arguments: str = ""
    announced: bool = False


@dataclass
class _Step:
    text: List[str] = field(default_factory=list)
    calls: Dict[int, _PendingCall] = field(default_factory=dict)
    finish_reason: Optional[str] = None


def parse_arguments(raw: str) -> Dict[str, Any]:
    try:
        value = json.loads(raw) if raw.strip() else {}
    except ValueError:
        return {}
    return value if isinstance(value, dict) else {}


class ToolLoopGenerator:
    """Drives one turn against a streaming chat model."""

    def __init__(self, llm: ChatModel, registry: ToolRegistry, max_steps: int = 5):
        self.llm = llm
        self.registry = registry
        self.max_steps = max_steps

    async def generate(
        self,
        system_prompt: str,
        messages: Sequence[Dict[str, str]],
    ) -> AsyncIterator[GenerationEvent]:
        conversation: List[ChatMessage] = [ChatMessage(role=MessageRole.SYSTEM, content=system_prompt)]
        conversation.extend(
            ChatMessage(role=MessageRole(m["role"]), content=m["content"]) for m in messages
        )
        tools = self.registry.definitions() or None

        for step_number in range(1, self.max_steps + 1):
            step = _Step()

            async for chunk in self.llm.chat_completion_stream(conversation, tools=tools):
                if chunk.content:
                    step.text.append(chunk.content)
                    yield TextToken(chunk.content)

                for delta in chunk.tool_calls:
                    call = step.calls.get(delta.index)
                    if call is None:
                        call = _PendingCall(id=delta.id or f"call_{step_number}_{delta.index}")
                        step.calls[delta.index] = call
                    if delta.name and not call.name:
                        call.name = delta.name
                    call.arguments += delta.arguments
                    if call.name and not call.announced:
                        call.announced = True
                        yield ToolCallStarted(call.id, call.name)

                if chunk.finish_reason:
                    step.finish_reason = chunk.finish_reason

            if not step.calls:
                yield StepFinished(is_continued=False, finish_reason=step.finish_reason)
                return

            calls = [step.calls[i] for i in sorted(step.calls)]
            conversation.append(
                ChatMessage(
                    role=MessageRole.ASSISTANT,
                    content="".join(step.text) or None,
                    tool_calls=[
                        ToolCall(id=c.id, function={"name": c.name, "arguments": c.arguments or "{}"})
                        for c in calls
                    ],
                )
            )

            for call in calls:
                if not call.announced:
                    yield ToolCallStarted(call.id, call.name)
                yield ToolCallInvoked(call.id, call.name, parse_arguments(call.arguments))
                result = await self.registry.execute(call.name, call.arguments)
                yield ToolResultReady(call.id, call.name, result)
                conversation.append(
                    ChatMessage(
                        role=MessageRole.TOOL,
                        tool_call_id=call.id,
                        content=json.dumps(result, default=str, ensure_ascii=False),
                    )
                )

            continued = step_number < self.max_steps
            yield StepFinished(is_continued=continued, finish_reason=step.finish_reason)
            if not continued:
                logger.warning("Step limit reached with tool calls pending", max_steps=self.max_steps)


__all__ = ["ChatModel", "ToolLoopGenerator", "parse_arguments"]
