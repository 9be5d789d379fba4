"""
Server-side persistence of conversations, keyed by session id.

The stored copy is a recovery mechanism: the client's own history wins
whenever it sends one.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import Field, ValidationError

from agentprd.exceptions import StorageError
from agentprd.protocol.frames import ConversationMessage, WireModel
from agentprd.storage.kv import KeyValueStore
from agentprd.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_NAMESPACE = "agentprd-main"


def conversation_key(session_id: str) -> str:
    return f"conversation:{session_id}"


class ConversationContext(WireModel):
    session_id: str
    messages: List[ConversationMessage] = Field(default_factory=list)
    user_id: Optional[str] = None


class SessionStore:
    """Loads and saves ``ConversationContext`` records."""

    def __init__(self, kv: KeyValueStore, namespace: str = DEFAULT_NAMESPACE):
        self.kv = kv
        self.namespace = namespace

    async def load(self, session_id: str) -> Optional[ConversationContext]:
        """Return the stored conversation, or None if missing or unreadable."""
        key = conversation_key(session_id)
        try:
            result = await self.kv.get(self.namespace, key)
        except Exception as e:
            logger.warning(f"Failed to load conversation context: {e}", session_id=session_id)
            return None

        if not result.exists:
            return None

        try:
            return ConversationContext.model_validate(result.data)
        except ValidationError as e:
            logger.warning(
                f"Stored conversation is invalid: {e.error_count()} error(s)",
                session_id=session_id,
            )
            return None

    async def save(self, context: ConversationContext) -> None:
        """
        Raises:
            StorageError: If the backend rejects the write
        """
        key = conversation_key(context.session_id)
        try:
            await self.kv.set(self.namespace, key, context.to_wire())
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save conversation: {e}", namespace=self.namespace, key=key) from e

        logger.info(
            "Conversation saved",
            session_id=context.session_id,
            message_count=len(context.messages),
        )


__all__ = ["ConversationContext", "SessionStore", "conversation_key", "DEFAULT_NAMESPACE"]
