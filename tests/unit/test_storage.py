"""
Tests for persistent key/value backends.
"""

import fnmatch

import pytest
import redis
from cryptography.fernet import Fernet

from sahayak.exceptions import CacheIOError
from sahayak.interfaces import KeyValueStore
from sahayak.storage import (
    EncryptedKeyValueStore,
    FileKeyValueStore,
    InMemoryKeyValueStore,
    RedisKeyValueStore,
)


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the store."""

    def __init__(self, fail: bool = False, undecodable: bool = False):
        self.data: dict[str, str] = {}
        self.fail = fail
        self.undecodable = undecodable
        self.closed = False

    def _check(self):
        if self.fail:
            raise redis.ConnectionError("connection refused")

    async def get(self, key):
        self._check()
        if self.undecodable:
            raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
        return self.data.get(key)

    async def set(self, key, value):
        self._check()
        self.data[key] = value
        return True

    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    async def scan_iter(self, match=None, count=None):
        self._check()
        for key in list(self.data):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def ping(self):
        self._check()
        return True

    async def aclose(self):
        self.closed = True


class TestProtocolConformance:
    """Every backend satisfies the KeyValueStore protocol."""

    def test_backends_are_key_value_stores(self, tmp_path):
        stores = [
            InMemoryKeyValueStore(),
            FileKeyValueStore(tmp_path),
            RedisKeyValueStore(FakeRedis()),
            EncryptedKeyValueStore(InMemoryKeyValueStore(), Fernet.generate_key()),
        ]
        for store in stores:
            assert isinstance(store, KeyValueStore)


class TestFileStore:
    """Test the file-backed store."""

    @pytest.mark.asyncio
    async def test_write_read_delete(self, tmp_path):
        store = FileKeyValueStore(tmp_path / "cache")

        await store.write("cache_dashboard_overview", '{"ok": true}')

        assert await store.read("cache_dashboard_overview") == '{"ok": true}'
        assert await store.list_keys() == ["cache_dashboard_overview"]

        await store.delete("cache_dashboard_overview")
        await store.delete("cache_dashboard_overview")
        assert await store.read("cache_dashboard_overview") is None

    @pytest.mark.asyncio
    async def test_keys_with_path_characters(self, tmp_path):
        store = FileKeyValueStore(tmp_path)

        await store.write("cache_chat/history:42", "x")

        assert await store.read("cache_chat/history:42") == "x"
        assert await store.list_keys() == ["cache_chat/history:42"]
        assert all(p.parent == tmp_path for p in tmp_path.iterdir())

    @pytest.mark.asyncio
    async def test_overwrite_and_clear(self, tmp_path):
        store = FileKeyValueStore(tmp_path)
        await store.write("a", "1")
        await store.write("a", "2")
        await store.write("b", "3")

        assert await store.read("a") == "2"

        await store.clear()
        assert await store.list_keys() == []

    @pytest.mark.asyncio
    async def test_os_errors_become_cache_errors(self, tmp_path):
        store = FileKeyValueStore(tmp_path)
        # A directory where the entry file should be makes reads fail
        (tmp_path / "a.entry").mkdir()

        with pytest.raises(CacheIOError):
            await store.read("a")

    @pytest.mark.asyncio
    async def test_undecodable_file_becomes_cache_error(self, tmp_path):
        store = FileKeyValueStore(tmp_path)
        (tmp_path / "cache_k.entry").write_bytes(b"\xff\xfe\x00garbage")

        with pytest.raises(CacheIOError):
            await store.read("cache_k")


class TestRedisStore:
    """Test the redis-backed store with an in-process client."""

    @pytest.mark.asyncio
    async def test_namespaced_operations(self):
        client = FakeRedis()
        client.data["other:key"] = "foreign"
        store = RedisKeyValueStore(client, namespace="sahayak:plain:")

        await store.write("cache_a", "1")
        await store.write("cache_b", "2")

        assert client.data["sahayak:plain:cache_a"] == "1"
        assert await store.read("cache_a") == "1"
        assert sorted(await store.list_keys()) == ["cache_a", "cache_b"]

        await store.clear()
        assert await store.list_keys() == []
        assert client.data == {"other:key": "foreign"}

    @pytest.mark.asyncio
    async def test_redis_errors_become_cache_errors(self):
        store = RedisKeyValueStore(FakeRedis(fail=True))

        with pytest.raises(CacheIOError):
            await store.read("a")
        with pytest.raises(CacheIOError):
            await store.write("a", "1")
        with pytest.raises(CacheIOError):
            await store.list_keys()

    @pytest.mark.asyncio
    async def test_undecodable_value_becomes_cache_error(self):
        store = RedisKeyValueStore(FakeRedis(undecodable=True))

        with pytest.raises(CacheIOError):
            await store.read("cache_k")

    @pytest.mark.asyncio
    async def test_ping_and_close(self):
        client = FakeRedis()
        store = RedisKeyValueStore(client)

        assert await store.ping()
        await store.aclose()
        assert client.closed

        assert not await RedisKeyValueStore(FakeRedis(fail=True)).ping()


class TestEncryptedStore:
    """Test the Fernet-encrypted store."""

    @pytest.mark.asyncio
    async def test_values_encrypted_keys_listed(self):
        inner = InMemoryKeyValueStore()
        store = EncryptedKeyValueStore(inner, EncryptedKeyValueStore.generate_key())

        await store.write("cache_token", "plain text")

        assert await inner.read("cache_token") != "plain text"
        assert await store.read("cache_token") == "plain text"
        assert await store.list_keys() == ["cache_token"]

    @pytest.mark.asyncio
    async def test_wrong_key_fails_integrity_check(self):
        inner = InMemoryKeyValueStore()
        await EncryptedKeyValueStore(inner, Fernet.generate_key()).write("k", "v")

        other = EncryptedKeyValueStore(inner, Fernet.generate_key())
        with pytest.raises(CacheIOError):
            await other.read("k")

    @pytest.mark.asyncio
    async def test_missing_key_reads_none(self):
        store = EncryptedKeyValueStore(InMemoryKeyValueStore(), Fernet.generate_key())

        assert await store.read("missing") is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
