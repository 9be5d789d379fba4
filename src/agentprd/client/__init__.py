"""
Client side of the agent protocol: the HTTP client and chat UI state.
"""

from agentprd.client.agent_client import AgentClient, AgentReply
from agentprd.client.chat import ChatBusyError, ChatMessage, ChatSession, TurnOutcome

__all__ = ["AgentClient", "AgentReply", "ChatSession", "ChatMessage", "ChatBusyError", "TurnOutcome"]
