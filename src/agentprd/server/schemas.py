"""
Request and response bodies of the agent endpoint.
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import ConfigDict, Field

from agentprd.config.models import ApprovalMode
from agentprd.protocol.frames import ConversationMessage, WireModel

Channel = Literal["cli", "email", "slack", "discord"]


class RequestContext(WireModel):
    model_config = ConfigDict(extra="ignore")

    session_id: Optional[str] = None
    command: Optional[str] = None
    approval_mode: Optional[ApprovalMode] = None
    conversation_history: List[ConversationMessage] = Field(default_factory=list)


class AgentRequest(WireModel):
    model_config = ConfigDict(extra="ignore")

    channel: Channel = "cli"
    message: str = "Hello"
    context: Optional[RequestContext] = None
    user_id: Optional[str] = None


class AgentResponse(WireModel):
    content: str
    session_id: str
    needs_approval: bool = False
    error: Optional[str] = None


__all__ = ["AgentRequest", "AgentResponse", "RequestContext", "Channel"]
