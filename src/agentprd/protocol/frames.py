"""
Frame types for the AgentPRD streaming response body.

A response body interleaves three kinds of frames: raw text, tool events
wrapped in ``TOOL_EVENT_SENTINEL ... \\n`` and one trailing metadata record
after ``METADATA_SENTINEL``. Wire JSON uses camelCase keys.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

TOOL_EVENT_SENTINEL = "\n__AGENTPRD_TOOL_EVENT__"
METADATA_SENTINEL = "\n__AGENTPRD_METADATA__\n"


def now_ms() -> int:
    """Current time as epoch milliseconds (tool event timestamps)."""
    return int(time.time() * 1000)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WireModel(BaseModel):
    """Base for models that travel as camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TextDelta(BaseModel):
    """A fragment of assistant-visible text."""

    content: str


class ToolEventKind(str, Enum):
    CALL_START = "tool-call-start"
    CALL = "tool-call"
    RESULT = "tool-result"
    STEP_FINISH = "step-finish"


class ToolEvent(WireModel):
    """
    One lifecycle event for a tool invocation.

    Unknown keys are kept so newer servers can add fields without breaking
    older clients.
    """

    model_config = ConfigDict(extra="allow")

    type: ToolEventKind
    tool_name: Optional[str] = None
    args: Optional[Any] = None
    result: Optional[Any] = None
    tool_call_id: Optional[str] = None
    is_continued: Optional[bool] = None
    timestamp: Optional[int] = None


class ConversationMessage(WireModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=utc_now)

    @field_validator("timestamp")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        # Naive timestamps from older clients are read as UTC
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class Metadata(WireModel):
    """The terminal frame: session id, trimmed history and approval flag."""

    type: Literal["metadata"] = "metadata"
    session_id: Optional[str] = None
    conversation_history: List[ConversationMessage] = Field(default_factory=list)
    needs_approval: bool = False


Frame = Union[TextDelta, ToolEvent, Metadata]


__all__ = [
    "TOOL_EVENT_SENTINEL",
    "METADATA_SENTINEL",
    "TextDelta",
    "ToolEventKind",
    "ToolEvent",
    "ConversationMessage",
    "Metadata",
    "Frame",
    "WireModel",
    "now_ms",
    "utc_now",
]
