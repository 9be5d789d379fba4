"""Tests for key-value backends and the server-side session store."""

import pytest

from agentprd.exceptions import StorageError
from agentprd.protocol.frames import ConversationMessage
from agentprd.storage.kv import KeyValueStore, YamlKeyValueStore, get_or_default
from agentprd.storage.session_store import ConversationContext, SessionStore, conversation_key


class BrokenStore:
    async def get(self, namespace, key):
        raise ConnectionError("kv offline")

    async def set(self, namespace, key, value):
        raise ConnectionError("kv offline")

    async def delete(self, namespace, key):
        raise ConnectionError("kv offline")


class TestInMemoryStore:
    @pytest.mark.asyncio
    async def test_get_set_delete(self, kv):
        assert (await kv.get("ns", "a")).exists is False

        await kv.set("ns", "a", {"n": 1})
        result = await kv.get("ns", "a")
        assert result.exists and result.data == {"n": 1}

        await kv.delete("ns", "a")
        assert (await kv.get("ns", "a")).exists is False

    @pytest.mark.asyncio
    async def test_values_are_copied(self, kv):
        value = {"items": [1]}
        await kv.set("ns", "a", value)
        value["items"].append(2)

        stored = (await kv.get("ns", "a")).data
        stored["items"].append(3)
        assert (await kv.get("ns", "a")).data == {"items": [1]}

    @pytest.mark.asyncio
    async def test_namespaces_are_isolated(self, kv):
        await kv.set("one", "k", 1)
        assert (await kv.get("two", "k")).exists is False
        assert kv.keys("one") == ["k"]

    @pytest.mark.asyncio
    async def test_get_or_default(self, kv):
        assert await get_or_default(kv, "ns", "missing", []) == []
        await kv.set("ns", "falsy", 0)
        assert await get_or_default(kv, "ns", "falsy", 5) == 0

    def test_satisfies_protocol(self, kv, tmp_path):
        assert isinstance(kv, KeyValueStore)
        assert isinstance(YamlKeyValueStore(tmp_path), KeyValueStore)


class TestYamlStore:
    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        await YamlKeyValueStore(tmp_path).set("agentprd-main", "prd:1", {"title": "Search", "tags": ["a"]})

        result = await YamlKeyValueStore(tmp_path).get("agentprd-main", "prd:1")
        assert result.data == {"title": "Search", "tags": ["a"]}
        assert (tmp_path / "agentprd-main.yaml").exists()

    @pytest.mark.asyncio
    async def test_iso_strings_stay_strings(self, tmp_path):
        store = YamlKeyValueStore(tmp_path)
        await store.set("ns", "k", {"createdAt": "2024-06-10T12:00:00Z"})
        assert (await store.get("ns", "k")).data["createdAt"] == "2024-06-10T12:00:00Z"

    @pytest.mark.asyncio
    async def test_unsafe_namespace_is_sanitised(self, tmp_path):
        store = YamlKeyValueStore(tmp_path)
        await store.set("../evil ns", "k", 1)
        assert (tmp_path / ".._evil_ns.yaml").exists()

    @pytest.mark.asyncio
    async def test_delete(self, tmp_path):
        store = YamlKeyValueStore(tmp_path)
        await store.set("ns", "k", 1)
        await store.delete("ns", "k")
        await store.delete("ns", "never-set")
        assert (await store.get("ns", "k")).exists is False

    @pytest.mark.asyncio
    async def test_delete_key_holding_none(self, tmp_path):
        store = YamlKeyValueStore(tmp_path)
        await store.set("ns", "empty", None)
        assert (await store.get("ns", "empty")).exists is True

        await store.delete("ns", "empty")

        assert (await YamlKeyValueStore(tmp_path).get("ns", "empty")).exists is False

    @pytest.mark.asyncio
    async def test_corrupt_file_raises_storage_error(self, tmp_path):
        (tmp_path / "ns.yaml").write_text("key: [unclosed", encoding="utf-8")
        with pytest.raises(StorageError):
            await YamlKeyValueStore(tmp_path).get("ns", "key")


class TestSessionStore:
    @pytest.mark.asyncio
    async def test_save_and_load(self, kv):
        store = SessionStore(kv, namespace="test")
        context = ConversationContext(
            session_id="session_1",
            user_id="u1",
            messages=[
                ConversationMessage(role="user", content="hi"),
                ConversationMessage(role="assistant", content="hello"),
            ],
        )
        await store.save(context)

        raw = (await kv.get("test", conversation_key("session_1"))).data
        assert raw["sessionId"] == "session_1"

        loaded = await store.load("session_1")
        assert [m.content for m in loaded.messages] == ["hi", "hello"]
        assert loaded.user_id == "u1"

    @pytest.mark.asyncio
    async def test_missing_session(self, kv):
        assert await SessionStore(kv).load("nope") is None

    @pytest.mark.asyncio
    async def test_invalid_record_loads_as_none(self, kv):
        await kv.set("agentprd-main", conversation_key("bad"), {"messages": "not a list"})
        assert await SessionStore(kv).load("bad") is None

    @pytest.mark.asyncio
    async def test_backend_failure_on_load_is_tolerated(self):
        assert await SessionStore(BrokenStore()).load("s") is None

    @pytest.mark.asyncio
    async def test_backend_failure_on_save_raises(self):
        with pytest.raises(StorageError):
            await SessionStore(BrokenStore()).save(ConversationContext(session_id="s"))

    def test_conversation_key(self):
        assert conversation_key("abc") == "conversation:abc"
