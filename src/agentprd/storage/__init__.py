"""
Key-value storage backends and the conversation store built on them.
"""

from agentprd.storage.kv import (
    InMemoryKeyValueStore,
    KeyValueStore,
    KVResult,
    YamlKeyValueStore,
)
from agentprd.storage.session_store import ConversationContext, SessionStore

__all__ = [
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "KVResult",
    "YamlKeyValueStore",
    "ConversationContext",
    "SessionStore",
]
