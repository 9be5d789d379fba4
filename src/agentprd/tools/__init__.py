"""
Tools the agent can call during a turn.
"""

from __future__ import annotations

from typing import Optional

from agentprd.storage.kv import KeyValueStore
from agentprd.tools.base import Tool, ToolContext, ToolRegistry
from agentprd.tools.context_tools import register_context_tools
from agentprd.tools.search_tools import register_search_tools
from agentprd.tools.visualization_tools import register_visualization_tools


def build_registry(
    kv: KeyValueStore,
    namespace: str = "agentprd-main",
    user_id: Optional[str] = None,
) -> ToolRegistry:
    """Registry with every built-in tool bound to one request's context."""
    registry = ToolRegistry(ToolContext(kv=kv, namespace=namespace, user_id=user_id))
    register_context_tools(registry)
    register_search_tools(registry)
    register_visualization_tools(registry)
    return registry


__all__ = ["Tool", "ToolContext", "ToolRegistry", "build_registry"]
