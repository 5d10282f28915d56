from concurrent.futures import ThreadPoolExecutor

import pytest

from client.lru import LRUCache
from schemas.chunk import ChunkMetadata
from schemas.search import SearchHit
from schemas.search import query_key
from webapp.cache import KEY_PREFIX, EdgeCache, MemoryKVStore


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class BrokenKV:
    async def get(self, key):
        raise ConnectionError("kv unavailable")

    async def put(self, key, value, ttl_seconds=None):
        raise ConnectionError("kv unavailable")


# ---------------------------------------------------------------------------
# Query key
# ---------------------------------------------------------------------------

def test_query_key_normalizes_text():
    assert query_key("  Streaming Events ", "claude", 3) == "streaming events:claude:3"
    assert query_key("streaming events", "claude", 3) == query_key("STREAMING EVENTS", "claude", 3)


def test_query_key_distinguishes_provider_and_top_k():
    assert query_key("q", None, 3) == "q:all:3"
    assert query_key("q", None, 3) != query_key("q", "openai", 3)
    assert query_key("q", "openai", 3) != query_key("q", "openai", 5)


# ---------------------------------------------------------------------------
# Client LRU
# ---------------------------------------------------------------------------

def test_lru_evicts_least_recently_used():
    cache = LRUCache(capacity=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)

    assert "a" not in cache
    assert cache.get("b") == 2
    assert cache.get("c") == 3
    assert len(cache) == 2


def test_lru_get_promotes_entry():
    cache = LRUCache(capacity=2)
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.get("a") == 1

    cache.set("c", 3)

    assert "a" in cache
    assert "b" not in cache


def test_lru_update_does_not_grow():
    cache = LRUCache(capacity=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)

    assert len(cache) == 2
    assert cache.get("a") == 10
    cache.set("c", 3)
    assert "b" not in cache


def test_lru_default_capacity_and_clear():
    cache = LRUCache()
    for i in range(250):
        cache.set(str(i), i)
    assert len(cache) == 200
    assert cache.get("0") is None
    assert cache.get("249") == 249

    cache.clear()
    assert len(cache) == 0


def test_lru_rejects_zero_capacity():
    with pytest.raises(ValueError):
        LRUCache(capacity=0)


def test_lru_values_are_isolated_from_callers():
    hit = SearchHit(id="doc-1", content="original", metadata=ChunkMetadata(provider="openai", source="s"))
    stored = [hit]
    cache = LRUCache()
    cache.set("k", stored)

    stored.append(hit)
    returned = cache.get("k")
    returned[0].content = "mutated"
    returned.clear()

    again = cache.get("k")
    assert len(again) == 1
    assert again[0].content == "original"


def test_lru_concurrent_sets_respect_capacity():
    cache = LRUCache(capacity=50)

    def writer(worker: int) -> None:
        for i in range(500):
            cache.set(f"{worker}:{i}", i)
            cache.get(f"{worker}:{i // 2}")

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(writer, range(8)))

    assert len(cache) == 50
    assert len(cache._data) == 50
    assert all(cache.get(key) is not None for key in list(cache._data))


# ---------------------------------------------------------------------------
# Edge cache
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_edge_cache_round_trip_and_ttl():
    clock = FakeClock()
    kv = MemoryKVStore(clock=clock)
    cache = EdgeCache(kv, ttl_seconds=3600)

    assert await cache.get("q:all:3") is None
    assert await cache.set("q:all:3", [{"id": "doc-1"}]) is True
    assert await cache.get("q:all:3") == [{"id": "doc-1"}]

    clock.now += 3599
    assert await cache.get("q:all:3") == [{"id": "doc-1"}]
    clock.now += 1
    assert await cache.get("q:all:3") is None
    assert len(kv) == 0


@pytest.mark.asyncio
async def test_edge_cache_hashes_query_keys():
    kv = MemoryKVStore()
    cache = EdgeCache(kv)
    await cache.set("user text with spaces:all:3", {"v": 1})

    (stored_key,) = kv._data.keys()
    assert stored_key.startswith(KEY_PREFIX)
    assert len(stored_key) == len(KEY_PREFIX) + 64
    assert stored_key == EdgeCache.storage_key("user text with spaces:all:3")


@pytest.mark.asyncio
async def test_edge_cache_raw_persistent_entries_never_expire():
    clock = FakeClock()
    kv = MemoryKVStore(clock=clock)
    cache = EdgeCache(kv, ttl_seconds=10)

    await cache.set("models:all", {"openai": []}, raw=True, persistent=True)
    clock.now += 10 ** 6

    assert "models:all" in kv._data
    assert await cache.get("models:all", raw=True) == {"openai": []}


@pytest.mark.asyncio
async def test_edge_cache_failures_degrade_to_miss():
    cache = EdgeCache(BrokenKV())

    assert await cache.set("q:all:3", [1, 2]) is False
    assert await cache.get("q:all:3") is None


@pytest.mark.asyncio
async def test_edge_cache_discards_undecodable_entry():
    kv = MemoryKVStore()
    await kv.put(EdgeCache.storage_key("k"), "{not json")
    assert await EdgeCache(kv).get("k") is None
