"""
HTTP surface of the agent. ``agentprd.server.app.create_app`` builds the
FastAPI application.
"""

from agentprd.server.schemas import AgentRequest, AgentResponse, RequestContext

__all__ = ["AgentRequest", "AgentResponse", "RequestContext"]
