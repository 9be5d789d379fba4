"""
Data models for LLM interactions.

Type-safe models for chat messages and streamed completion chunks,
including the incremental tool-call deltas the agent loop reassembles.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MessageRole(str, Enum):
    """Valid roles for chat messages."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolCall(BaseModel):
    """A complete tool/function call requested by the model."""

    model_config = ConfigDict(validate_assignment=True)

    id: str
    type: str = "function"
    function: Dict[str, Any]  # Contains name and arguments

    @property
    def name(self) -> str:
        return self.function.get("name", "")

    @property
    def arguments(self) -> str:
        return self.function.get("arguments", "")


class ChatMessage(BaseModel):
    """
    Represents a message in a chat conversation.

    Used for both input to and output from the LLM.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    role: MessageRole
    content: Optional[str] = None
    name: Optional[str] = None
    tool_call_id: Optional[str] = None  # For tool responses
    tool_calls: Optional[List[ToolCall]] = None  # For assistant turns

    def to_dict(self) -> Dict[str, Any]:
        """Convert to OpenAI API format."""
        data: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.name:
            data["name"] = self.name
        if self.tool_call_id:
            data["tool_call_id"] = self.tool_call_id
        if self.tool_calls:
            data["tool_calls"] = [tc.model_dump() for tc in self.tool_calls]
        return data


class ToolCallDelta(BaseModel):
    """
    A fragment of a streamed tool call.

    Only the first fragment of a call carries ``id`` and ``name``; later
    fragments append to ``arguments``. Fragments are correlated by ``index``.
    """

    model_config = ConfigDict(validate_assignment=True)

    index: int = 0
    id: Optional[str] = None
    name: Optional[str] = None
    arguments: str = ""


class Usage(BaseModel):
    """Token usage information from API response."""

    model_config = ConfigDict(validate_assignment=True)

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class StreamingChunk(BaseModel):
    """One chunk of a streaming chat completion."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = ""
    model: str = ""
    content: Optional[str] = None
    finish_reason: Optional[str] = None
    tool_calls: List[ToolCallDelta] = Field(default_factory=list)
    usage: Optional[Usage] = None


__all__ = [
    "MessageRole",
    "ChatMessage",
    "ToolCall",
    "ToolCallDelta",
    "Usage",
    "StreamingChunk",
]
