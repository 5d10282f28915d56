"""Edge response cache in front of vector search.

Entries live in a key-value store with a TTL (Redis in production, an
in-process dict otherwise). The cache is an optimization only: store errors
are logged and read as misses, writes that fail are dropped.
"""

import hashlib
import logging
import time
from typing import Any, Callable, Optional, Protocol

import orjson
import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600
KEY_PREFIX = "query:"


class KVStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None: ...


class MemoryKVStore:
    """Dict-backed store with lazy expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._data: dict[str, tuple[str, Optional[float]]] = {}
        self._clock = clock

    async def get(self, key: str) -> Optional[str]:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        self._data[key] = (value, expires_at)

    def __len__(self) -> int:
        return len(self._data)


class RedisKVStore:
    def __init__(self, client: aioredis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisKVStore":
        return cls(aioredis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        await self.client.set(key, value, ex=ttl_seconds or None)

    async def aclose(self) -> None:
        await self.client.aclose()


class EdgeCache:
    """JSON value cache over a KVStore.

    Query keys are hashed before hitting the store so arbitrary user text never
    becomes a raw store key.
    """

    def __init__(self, store: KVStore, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.store = store
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def storage_key(key: str) -> str:
        return KEY_PREFIX + hashlib.sha256(key.encode("utf-8")).hexdigest()

    async def get(self, key: str, raw: bool = False) -> Optional[Any]:
        store_key = key if raw else self.storage_key(key)
        try:
            value = await self.store.get(store_key)
        except Exception as e:
            logger.warning("Edge cache read failed for %s: %s", store_key, e)
            return None
        if value is None:
            return None
        try:
            return orjson.loads(value)
        except orjson.JSONDecodeError:
            logger.warning("Discarding undecodable edge cache entry %s", store_key)
            return None

    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: Optional[int] = None,
        raw: bool = False,
        persistent: bool = False,
    ) -> bool:
        """Store ``value``; returns False (and logs) if the write failed.

        ``persistent`` entries are written without expiry.
        """
        store_key = key if raw else self.storage_key(key)
        ttl = None if persistent else (ttl_seconds or self.ttl_seconds)
        try:
            await self.store.put(store_key, orjson.dumps(value).decode(), ttl)
        except Exception as e:
            logger.warning("Edge cache write failed for %s: %s", store_key, e)
            return False
        return True
