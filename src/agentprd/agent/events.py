"""
Generation events produced by the agent loop and consumed by the encoder.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union


@dataclass(frozen=True)
class TextToken:
    text: str


@dataclass(frozen=True)
class ToolCallStarted:
    tool_call_id: str
    tool_name: str


@dataclass(frozen=True)
class ToolCallInvoked:
    tool_call_id: str
    tool_name: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResultReady:
    tool_call_id: str
    tool_name: str
    result: Any = None


@dataclass(frozen=True)
class StepFinished:
    is_continued: bool = False
    finish_reason: Optional[str] = None


GenerationEvent = Union[TextToken, ToolCallStarted, ToolCallInvoked, ToolResultReady, StepFinished]


__all__ = [
    "TextToken",
    "ToolCallStarted",
    "ToolCallInvoked",
    "ToolResultReady",
    "StepFinished",
    "GenerationEvent",
]
