"""
Server-side agent: prompts, the model/tool loop and the turn orchestrator.

Import ``agentprd.agent.orchestrator`` directly for ``ProductOrchestrator``;
this package only re-exports the lightweight event types so that the
protocol layer can depend on them without pulling in the LLM stack.
"""

from agentprd.agent.events import (
    GenerationEvent,
    StepFinished,
    TextToken,
    ToolCallInvoked,
    ToolCallStarted,
    ToolResultReady,
)

__all__ = [
    "GenerationEvent",
    "StepFinished",
    "TextToken",
    "ToolCallInvoked",
    "ToolCallStarted",
    "ToolResultReady",
]
