from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

import redis

from .config import settings
from .exceptions import StorageError


# --- Persistence port ---
class KeyValueStore(ABC):
    """String values addressed by string keys."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str, ttl: Optional[timedelta] = None) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass


class RedisStore(KeyValueStore):
    def __init__(self, client: redis.Redis):
        self.client = client

    def get(self, key: str) -> Optional[str]:
        try:
            return self.client.get(key)
        except redis.RedisError as e:
            raise StorageError(f"Could not read {key}: {e}") from e

    def set(self, key: str, value: str, ttl: Optional[timedelta] = None) -> None:
        try:
            self.client.set(key, value, ex=ttl)
        except redis.RedisError as e:
            raise StorageError(f"Could not write {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self.client.delete(key)
        except redis.RedisError as e:
            raise StorageError(f"Could not delete {key}: {e}") from e


class MemoryStore(KeyValueStore):
    """In-process store for tests and single-user runs.

    ``max_value_size`` mimics a browser storage quota: writing a larger value
    raises :class:`StorageError`.
    """

    def __init__(self, max_value_size: Optional[int] = None):
        self.max_value_size = max_value_size
        self._data: Dict[str, Tuple[str, Optional[datetime]]] = {}

    def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and datetime.now() >= expires_at:
            del self._data[key]
            return None
        return value

    def set(self, key: str, value: str, ttl: Optional[timedelta] = None) -> None:
        if self.max_value_size is not None and len(value) > self.max_value_size:
            raise StorageError(f"Quota exceeded writing {key} ({len(value)} chars)")
        expires_at = datetime.now() + ttl if ttl else None
        self._data[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)


def get_store() -> KeyValueStore:
    return RedisStore(redis_client)
