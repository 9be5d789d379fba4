"""
LLM integration for the AgentPRD agent server.
"""

from agentprd.llm.models import (
    ChatMessage,
    MessageRole,
    StreamingChunk,
    ToolCall,
    ToolCallDelta,
    Usage,
)
from agentprd.llm.openai_client import OpenAIClient

__all__ = [
    "ChatMessage",
    "MessageRole",
    "StreamingChunk",
    "ToolCall",
    "ToolCallDelta",
    "Usage",
    "OpenAIClient",
]
