"""
Client-held conversation history and session ids.

The client is the source of truth for the live conversation: it resends its
history every turn and, after the turn, either adopts the server's
``conversationHistory`` or appends its own user/assistant pair.
"""

from __future__ import annotations

import secrets
import string
import time
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from agentprd.protocol.frames import ConversationMessage, Metadata, utc_now

DEDUPE_WINDOW = timedelta(seconds=5)
DEFAULT_WINDOW = 10

_BASE36 = string.digits + string.ascii_lowercase


def generate_session_id(prefix: str = "cli") -> str:
    """Client-side id: ``cli-<epoch ms>-<7 base36 chars>``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(7))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def generate_server_session_id() -> str:
    return f"session_{int(time.time() * 1000)}"


class ConversationHistory:
    """Bounded list of conversation messages with duplicate suppression."""

    def __init__(
        self,
        messages: Optional[Iterable[ConversationMessage]] = None,
        window: int = DEFAULT_WINDOW,
    ):
        self.window = window
        self._messages: List[ConversationMessage] = list(messages or [])[-window:]

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self):
        return iter(self._messages)

    @property
    def messages(self) -> List[ConversationMessage]:
        return list(self._messages)

    def is_duplicate(self, role: str, content: str, now: Optional[datetime] = None) -> bool:
        now = now or utc_now()
        return any(
            m.role == role
            and m.content == content
            and abs(now - m.timestamp) <= DEDUPE_WINDOW
            for m in self._messages
        )

    def add(self, role: str, content: str, now: Optional[datetime] = None) -> bool:
        """
        Append a message unless an identical one was added within 5 seconds.

        Returns:
            True if the message was appended
        """
        now = now or utc_now()
        if self.is_duplicate(role, content, now):
            return False
        self._messages.append(ConversationMessage(role=role, content=content, timestamp=now))
        self._messages = self._messages[-self.window:]
        return True

    def replace(self, messages: Iterable[ConversationMessage]) -> None:
        self._messages = list(messages)[-self.window:]

    def record_turn(
        self,
        user_message: str,
        assistant_message: str,
        metadata: Optional[Metadata] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """Update history after a turn from metadata, or from the local pair."""
        if metadata is not None and metadata.conversation_history:
            self.replace(metadata.conversation_history)
            return

        self.add("user", user_message, now)
        if assistant_message:
            self.add("assistant", assistant_message, now)

    def clear(self) -> None:
        self._messages = []

    def to_wire(self) -> List[dict]:
        return [m.to_wire() for m in self._messages]


__all__ = [
    "ConversationHistory",
    "generate_session_id",
    "generate_server_session_id",
    "DEDUPE_WINDOW",
    "DEFAULT_WINDOW",
]
