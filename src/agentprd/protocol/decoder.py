"""
Client-side demultiplexer for the AgentPRD response body.

``StreamDecoder`` is fed network chunks as they arrive. Chunks never need to
line up with frame boundaries: a trailing fragment that might be the start
of a sentinel, or a tool-event payload still waiting for its newline, is
held back until the next chunk. Feeding a stream in any partition therefore
yields the same content, tool events and metadata as feeding it whole.

Framing problems never raise. A tool-event payload that is not a JSON
object is passed through as ordinary text, and a damaged metadata record is
recovered on a best-effort basis or dropped.
"""

from __future__ import annotations

import codecs
import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from agentprd.protocol.frames import (
    METADATA_SENTINEL,
    TOOL_EVENT_SENTINEL,
    Frame,
    Metadata,
    TextDelta,
    ToolEvent,
    ToolEventKind,
)
from agentprd.utils.logger import get_logger

logger = get_logger(__name__)

_SENTINELS = (TOOL_EVENT_SENTINEL, METADATA_SENTINEL)
_CLOSING_BRACE = re.compile(r"\}")


class DecoderState(str, Enum):
    STREAMING_TEXT = "streaming_text"
    COLLECTING_METADATA = "collecting_metadata"
    DONE = "done"


class ToolCallState(str, Enum):
    STARTED = "started"
    CALLED = "called"
    COMPLETED = "completed"


class ToolCallTracker:
    """
    Lifecycle state per tool call, keyed by ``toolCallId``.

    Start/call events that arrive without an id are parked under a
    per-tool-name key until an id-bearing event for that tool shows up.
    """

    def __init__(self) -> None:
        self._states: Dict[str, ToolCallState] = {}
        self._names: Dict[str, Optional[str]] = {}

    @staticmethod
    def _pending_key(tool_name: Optional[str]) -> str:
        return f"pending:{tool_name or 'unknown'}"

    def observe(self, event: ToolEvent) -> None:
        if event.type == ToolEventKind.STEP_FINISH:
            return

        pending = self._pending_key(event.tool_name)
        key = event.tool_call_id
        if key and pending in self._states:
            # Adopt the anonymous entry now that the id is known
            state = self._states.pop(pending)
            self._names.pop(pending, None)
            self._states.setdefault(key, state)
        key = key or pending
        self._names[key] = event.tool_name

        if event.type == ToolEventKind.RESULT:
            self._states[key] = ToolCallState.COMPLETED
        elif event.type == ToolEventKind.CALL:
            if self._states.get(key) != ToolCallState.COMPLETED:
                self._states[key] = ToolCallState.CALLED
        elif event.type == ToolEventKind.CALL_START:
            self._states.setdefault(key, ToolCallState.STARTED)

    def state(self, tool_call_id: str) -> Optional[ToolCallState]:
        return self._states.get(tool_call_id)

    def tool_name(self, key: str) -> Optional[str]:
        return self._names.get(key)

    @property
    def states(self) -> Dict[str, ToolCallState]:
        return dict(self._states)

    @property
    def running(self) -> List[str]:
        return [k for k, s in self._states.items() if s != ToolCallState.COMPLETED]

    @property
    def running_count(self) -> int:
        return len(self.running)

    def running_tools(self) -> List[str]:
        """Tool names of the calls still in flight."""
        return [self._names.get(k) or "unknown" for k in self.running]

    def reset(self) -> None:
        self._states.clear()
        self._names.clear()


@dataclass
class DecodeResult:
    content: str
    tool_events: List[ToolEvent] = field(default_factory=list)
    metadata: Optional[Metadata] = None
    active_tool_calls: List[str] = field(default_factory=list)


def _held_back_length(buffer: str) -> int:
    """Length of the longest suffix of ``buffer`` that could start a sentinel."""
    longest = max(len(s) for s in _SENTINELS) - 1
    for size in range(min(len(buffer), longest), 0, -1):
        tail = buffer[-size:]
        if any(s.startswith(tail) for s in _SENTINELS):
            return size
    return 0


def _parse_tool_event(payload: str) -> Optional[ToolEvent]:
    try:
        data = json.loads(payload)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    try:
        return ToolEvent.model_validate(data)
    except ValidationError:
        return None


def recover_json_object(raw: str) -> Optional[Dict[str, Any]]:
    """
    Parse ``raw`` as a JSON object, tolerating transport debris.

    Tries a strict parse first, then the leading object with trailing
    garbage ignored, then the longest prefix that ends in ``}`` and parses.
    """
    text = raw.strip()
    if not text:
        return None

    try:
        data = json.loads(text)
        return data if isinstance(data, dict) else None
    except ValueError:
        pass

    start = text.find("{")
    if start < 0:
        return None
    text = text[start:]

    try:
        data, _ = json.JSONDecoder().raw_decode(text)
        if isinstance(data, dict):
            return data
    except ValueError:
        pass

    ends = [m.end() for m in _CLOSING_BRACE.finditer(text)]
    for end in reversed(ends):
        try:
            data = json.loads(text[:end])
        except ValueError:
            continue
        if isinstance(data, dict):
            return data
    return None


class StreamDecoder:
    """
    Incremental decoder for one response body.

    ``on_text`` and ``on_tool_event`` are called synchronously, in stream
    order, as frames are recognised.
    """

    def __init__(
        self,
        on_text: Optional[Callable[[str], None]] = None,
        on_tool_event: Optional[Callable[[ToolEvent], None]] = None,
    ):
        self.on_text = on_text
        self.on_tool_event = on_tool_event
        self.state = DecoderState.STREAMING_TEXT
        self.tracker = ToolCallTracker()
        self.tool_events: List[ToolEvent] = []
        self.metadata: Optional[Metadata] = None

        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._metadata_buffer: List[str] = []
        self._content: List[str] = []

    @property
    def content(self) -> str:
        return "".join(self._content)

    def feed(self, chunk: Union[str, bytes]) -> List[Frame]:
        """Consume one chunk and return the frames it completed."""
        if self.state == DecoderState.DONE:
            raise RuntimeError("feed() called after finish()")

        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)
        if not chunk:
            return []

        if self.state == DecoderState.COLLECTING_METADATA:
            self._metadata_buffer.append(chunk)
            return []

        self._buffer += chunk
        return self._drain(final=False)

    def finish(self) -> DecodeResult:
        """Flush held-back data, parse metadata and close the decoder."""
        if self.state != DecoderState.DONE:
            tail = self._utf8.decode(b"", final=True)
            if tail:
                if self.state == DecoderState.COLLECTING_METADATA:
                    self._metadata_buffer.append(tail)
                else:
                    self._buffer += tail

            if self.state == DecoderState.STREAMING_TEXT:
                self._drain(final=True)
            if self.state == DecoderState.COLLECTING_METADATA:
                self.metadata = self._parse_metadata("".join(self._metadata_buffer))
            self.state = DecoderState.DONE

        return DecodeResult(
            content=self.content,
            tool_events=list(self.tool_events),
            metadata=self.metadata,
            active_tool_calls=self.tracker.running,
        )

    def _drain(self, final: bool) -> List[Frame]:
        frames: List[Frame] = []
        buffer = self._buffer

        while buffer:
            tool_at = buffer.find(TOOL_EVENT_SENTINEL)
            meta_at = buffer.find(METADATA_SENTINEL)

            if meta_at >= 0 and (tool_at < 0 or meta_at < tool_at):
                self._emit_text(buffer[:meta_at], frames)
                self._metadata_buffer.append(buffer[meta_at + len(METADATA_SENTINEL):])
                self.state = DecoderState.COLLECTING_METADATA
                buffer = ""
                break

            if tool_at >= 0:
                self._emit_text(buffer[:tool_at], frames)
                buffer = buffer[tool_at:]
                payload_start = len(TOOL_EVENT_SENTINEL)
                newline_at = buffer.find("\n", payload_start)

                if newline_at < 0:
                    if not final:
                        # Payload still arriving
                        break
                    event = _parse_tool_event(buffer[payload_start:])
                    if event is None:
                        self._emit_text(buffer, frames)
                    else:
                        self._emit_tool_event(event, frames)
                    buffer = ""
                    break

                event = _parse_tool_event(buffer[payload_start:newline_at])
                if event is None:
                    logger.debug("Malformed tool event payload passed through as text")
                    # Keep the newline: it may open the metadata sentinel
                    self._emit_text(buffer[:newline_at], frames)
                    buffer = buffer[newline_at:]
                else:
                    self._emit_tool_event(event, frames)
                    buffer = buffer[newline_at + 1:]
                continue

            held = 0 if final else _held_back_length(buffer)
            self._emit_text(buffer[:len(buffer) - held], frames)
            buffer = buffer[len(buffer) - held:]
            break

        self._buffer = buffer
        return frames

    def _emit_text(self, text: str, frames: List[Frame]) -> None:
        if not text:
            return
        self._content.append(text)
        frames.append(TextDelta(content=text))
        if self.on_text:
            self.on_text(text)

    def _emit_tool_event(self, event: ToolEvent, frames: List[Frame]) -> None:
        self.tool_events.append(event)
        self.tracker.observe(event)
        frames.append(event)
        if self.on_tool_event:
            self.on_tool_event(event)

    def _parse_metadata(self, raw: str) -> Optional[Metadata]:
        data = recover_json_object(raw)
        if data is None:
            logger.warning("Metadata frame unreadable, continuing without it", size=len(raw))
            return None
        try:
            return Metadata.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Metadata frame rejected: {e.error_count()} invalid field(s)")
            return None


def decode_stream(
    chunks: Iterable[Union[str, bytes]],
    on_text: Optional[Callable[[str], None]] = None,
    on_tool_event: Optional[Callable[[ToolEvent], None]] = None,
) -> DecodeResult:
    """Decode a complete body given as an iterable of chunks."""
    decoder = StreamDecoder(on_text=on_text, on_tool_event=on_tool_event)
    for chunk in chunks:
        decoder.feed(chunk)
    return decoder.finish()


__all__ = [
    "DecoderState",
    "ToolCallState",
    "ToolCallTracker",
    "DecodeResult",
    "StreamDecoder",
    "decode_stream",
    "recover_json_object",
]
