"""
Namespaced key-value storage.

The agent only needs ``get``/``set``/``delete`` by namespace and key. Two
backends are provided: an in-memory store for tests and ephemeral servers,
and a YAML-file store (one file per namespace) for a locally run agent.
"""

from __future__ import annotations

import asyncio
import copy
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import yaml

from agentprd.exceptions import StorageError
from agentprd.utils.logger import get_logger

logger = get_logger(__name__)

_UNSAFE_NAME = re.compile(r"[^A-Za-z0-9_.-]")


@dataclass(frozen=True)
class KVResult:
    exists: bool
    data: Any = None


@runtime_checkable
class KeyValueStore(Protocol):
    async def get(self, namespace: str, key: str) -> KVResult: ...

    async def set(self, namespace: str, key: str, value: Any) -> None: ...

    async def delete(self, namespace: str, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Process-local store. Values are deep-copied in and out."""

    def __init__(self) -> None:
        self._data: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def get(self, namespace: str, key: str) -> KVResult:
        async with self._lock:
            bucket = self._data.get(namespace, {})
            if key not in bucket:
                return KVResult(exists=False)
            return KVResult(exists=True, data=copy.deepcopy(bucket[key]))

    async def set(self, namespace: str, key: str, value: Any) -> None:
        async with self._lock:
            self._data.setdefault(namespace, {})[key] = copy.deepcopy(value)

    async def delete(self, namespace: str, key: str) -> None:
        async with self._lock:
            self._data.get(namespace, {}).pop(key, None)

    def keys(self, namespace: str) -> list[str]:
        return sorted(self._data.get(namespace, {}))


class YamlKeyValueStore:
    """
    File-backed store keeping each namespace in ``<root>/<namespace>.yaml``.

    Writes go to a temp file that is then renamed over the original, so a
    crash mid-write never leaves a truncated namespace behind.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self._lock = asyncio.Lock()

    def _path(self, namespace: str) -> Path:
        return self.root / f"{_UNSAFE_NAME.sub('_', namespace)}.yaml"

    def _read(self, namespace: str) -> Dict[str, Any]:
        path = self._path(namespace)
        if not path.exists():
            return {}
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise StorageError(f"Failed to read store: {e}", namespace=namespace) from e
        return data if isinstance(data, dict) else {}

    def _write(self, namespace: str, data: Dict[str, Any]) -> None:
        path = self._path(namespace)
        temp_path = path.with_suffix('.tmp')
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            with open(temp_path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=True, allow_unicode=True)
            temp_path.replace(path)
        except (OSError, yaml.YAMLError) as e:
            raise StorageError(f"Failed to write store: {e}", namespace=namespace) from e

    async def get(self, namespace: str, key: str) -> KVResult:
        async with self._lock:
            bucket = self._read(namespace)
        if key not in bucket:
            return KVResult(exists=False)
        return KVResult(exists=True, data=bucket[key])

    async def set(self, namespace: str, key: str, value: Any) -> None:
        async with self._lock:
            bucket = self._read(namespace)
            bucket[key] = value
            self._write(namespace, bucket)
        logger.debug("Stored value", namespace=namespace, key=key)

    async def delete(self, namespace: str, key: str) -> None:
        async with self._lock:
            bucket = self._read(namespace)
            if key in bucket:
                del bucket[key]
                self._write(namespace, bucket)


async def get_or_default(store: KeyValueStore, namespace: str, key: str, default: Optional[Any] = None) -> Any:
    """Return the stored value, or ``default`` when the key is absent."""
    result = await store.get(namespace, key)
    return result.data if result.exists else default


__all__ = [
    "KVResult",
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "YamlKeyValueStore",
    "get_or_default",
]
