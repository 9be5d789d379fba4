"""
Streaming wire protocol shared by the agent server and its clients.
"""

from agentprd.protocol.decoder import (
    DecodeResult,
    DecoderState,
    StreamDecoder,
    ToolCallState,
    ToolCallTracker,
    decode_stream,
)
from agentprd.protocol.encoder import (
    StreamEncoder,
    encode_metadata,
    encode_text,
    encode_tool_event,
)
from agentprd.protocol.frames import (
    METADATA_SENTINEL,
    TOOL_EVENT_SENTINEL,
    ConversationMessage,
    Frame,
    Metadata,
    TextDelta,
    ToolEvent,
    ToolEventKind,
)
from agentprd.protocol.reasoning import ReasoningDetector

__all__ = [
    "METADATA_SENTINEL",
    "TOOL_EVENT_SENTINEL",
    "ConversationMessage",
    "Frame",
    "Metadata",
    "TextDelta",
    "ToolEvent",
    "ToolEventKind",
    "StreamEncoder",
    "encode_metadata",
    "encode_text",
    "encode_tool_event",
    "DecodeResult",
    "DecoderState",
    "StreamDecoder",
    "ToolCallState",
    "ToolCallTracker",
    "decode_stream",
    "ReasoningDetector",
]
