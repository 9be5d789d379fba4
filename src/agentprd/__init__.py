"""
AgentPRD - AI product-management assistant.

A cloud-hosted conversational agent (streaming LLM calls, tool invocation,
key-value storage of work contexts, PRDs and notes) plus terminal front ends
that talk to it over a single streamed HTTP body.
"""

__version__ = "0.1.0"
__author__ = "AgentPRD Team"
__description__ = "AI product-management assistant with a streaming agent protocol"

__all__ = [
    "__version__",
    "__author__",
    "__description__",
]
