"""
Tool registry for the agent loop.

A tool is a name, a description, a pydantic model describing its
parameters (which doubles as the OpenAI function schema) and an async
handler. Handler failures are returned to the model as ``{"error": ...}``
instead of aborting the turn.
"""

from __future__ import annotations

import json
import secrets
import string
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ValidationError

from agentprd.storage.kv import KeyValueStore
from agentprd.utils.logger import get_logger

logger = get_logger(__name__)

Handler = Callable[["ToolContext", Any], Awaitable[Any]]

_BASE36 = string.digits + string.ascii_lowercase


def new_record_id(prefix: str) -> str:
    """Ids such as ``prd_1718000000000_k3x9q2``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


@dataclass
class ToolContext:
    """Per-request state shared by every tool call in a turn."""

    kv: KeyValueStore
    namespace: str = "agentprd-main"
    user_id: Optional[str] = None

    @property
    def owner(self) -> str:
        return self.user_id or "default"


@dataclass
class Tool:
    name: str
    description: str
    parameters: Type[BaseModel]
    handler: Handler

    def definition(self) -> Dict[str, Any]:
        """OpenAI function-tool definition."""
        schema = self.parameters.model_json_schema()
        schema.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": schema,
            },
        }


def to_result(value: Any) -> Any:
    """Convert handler output to plain JSON-serialisable data."""
    if isinstance(value, BaseModel):
        to_wire = getattr(value, "to_wire", None)
        return to_wire() if to_wire else value.model_dump(mode="json")
    if isinstance(value, list):
        return [to_result(v) for v in value]
    if isinstance(value, dict):
        return {k: to_result(v) for k, v in value.items()}
    return value


class ToolRegistry:
    """Named tools bound to one ``ToolContext``."""

    def __init__(self, context: ToolContext):
        self.context = context
        self._tools: Dict[str, Tool] = {}

    def register(self, tool: Tool) -> Tool:
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool
        return tool

    def tool(self, name: str, description: str, parameters: Type[BaseModel]) -> Callable[[Handler], Handler]:
        """Decorator form of ``register``."""
        def decorator(handler: Handler) -> Handler:
            self.register(Tool(name, description, parameters, handler))
            return handler
        return decorator

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def names(self) -> List[str]:
        return list(self._tools)

    def definitions(self) -> List[Dict[str, Any]]:
        return [t.definition() for t in self._tools.values()]

    async def execute(self, name: str, arguments: Union[str, Dict[str, Any], None]) -> Any:
        """Run a tool and return its JSON-ready result, or ``{"error": ...}``."""
        tool = self._tools.get(name)
        if tool is None:
            logger.warning("Model requested unknown tool", tool=name)
            return {"error": f"Unknown tool: {name}"}

        try:
            if isinstance(arguments, str):
                arguments = json.loads(arguments) if arguments.strip() else {}
            params = tool.parameters.model_validate(arguments or {})
        except (ValueError, ValidationError) as e:
            logger.warning(f"Invalid arguments for {name}: {e}")
            return {"error": f"Invalid arguments for {name}: {e}"}

        with logger.time_operation(f"tool {name}"):
            try:
                return to_result(await tool.handler(self.context, params))
            except Exception as e:
                logger.error(f"Tool {name} failed: {e}")
                return {"error": str(e)}


__all__ = ["Tool", "ToolContext", "ToolRegistry", "new_record_id", "to_result"]
