"""
Session continuity helpers.
"""

from agentprd.session.history import (
    ConversationHistory,
    generate_server_session_id,
    generate_session_id,
)

__all__ = [
    "ConversationHistory",
    "generate_server_session_id",
    "generate_session_id",
]
