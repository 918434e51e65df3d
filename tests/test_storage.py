"""Tests for the key-value persistence adapters."""

from datetime import timedelta

import pytest
import redis

from tcgmath.exceptions import StorageError
from tcgmath.storage import MemoryStore, RedisStore


class FakeRedis:
    """Records calls; fails every call when ``broken`` is set."""

    def __init__(self, broken: bool = False):
        self.broken = broken
        self.data = {}
        self.expiry = {}

    def _check(self):
        if self.broken:
            raise redis.ConnectionError("connection refused")

    def get(self, key):
        self._check()
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self._check()
        self.data[key] = value
        self.expiry[key] = ex

    def delete(self, key):
        self._check()
        self.data.pop(key, None)


class TestMemoryStore:
    def test_set_get_delete(self) -> None:
        store = MemoryStore()

        store.set("a", "1")
        assert store.get("a") == "1"
        assert "a" in store

        store.delete("a")
        assert store.get("a") is None
        store.delete("a")

    def test_expired_value_is_gone(self) -> None:
        store = MemoryStore()

        store.set("a", "1", ttl=timedelta(seconds=-1))
        store.set("b", "2", ttl=timedelta(minutes=5))

        assert store.get("a") is None
        assert store.get("b") == "2"

    def test_quota(self) -> None:
        store = MemoryStore(max_value_size=3)

        store.set("a", "abc")
        with pytest.raises(StorageError):
            store.set("a", "abcd")
        assert store.get("a") == "abc"


class TestRedisStore:
    def test_passes_through(self) -> None:
        client = FakeRedis()
        store = RedisStore(client)

        store.set("k", "v", ttl=timedelta(minutes=2))

        assert store.get("k") == "v"
        assert client.expiry["k"] == timedelta(minutes=2)
        store.delete("k")
        assert store.get("k") is None

    @pytest.mark.parametrize("call", ["get", "set", "delete"])
    def test_redis_errors_become_storage_errors(self, call: str) -> None:
        store = RedisStore(FakeRedis(broken=True))
        args = ("k", "v") if call == "set" else ("k",)

        with pytest.raises(StorageError):
            getattr(store, call)(*args)
