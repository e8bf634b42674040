import json
from unittest.mock import AsyncMock

from chronoprice.infra.cache.base import NullCache, price_cache_key
from chronoprice.infra.cache.memory import MemoryCache
from chronoprice.infra.cache.redis_cache import RedisCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestCacheKey:
    def test_format(self):
        assert price_cache_key("0xABC", "Ethereum", 1700000000) == "price:0xabc:ethereum:1700000000"


class TestNullCache:
    async def test_always_misses(self):
        cache = NullCache()
        await cache.set("k", {"price": "1"}, 60)
        assert await cache.get("k") is None


class TestMemoryCache:
    async def test_hit_before_expiry(self):
        clock = FakeClock()
        cache = MemoryCache(clock=clock)
        await cache.set("k", {"price": "1"}, 60)

        clock.now += 59
        assert await cache.get("k") == {"price": "1"}

    async def test_miss_after_expiry(self):
        clock = FakeClock()
        cache = MemoryCache(clock=clock)
        await cache.set("k", {"price": "1"}, 60)

        clock.now += 60
        assert await cache.get("k") is None
        assert cache.ttl_remaining("k") is None

    async def test_zero_ttl_is_not_stored(self):
        cache = MemoryCache()
        await cache.set("k", {"price": "1"}, 0)
        assert await cache.get("k") is None

    async def test_returned_value_is_a_copy(self):
        cache = MemoryCache()
        await cache.set("k", {"price": "1"}, 60)
        (await cache.get("k"))["price"] = "2"
        assert await cache.get("k") == {"price": "1"}

    async def test_delete(self):
        cache = MemoryCache()
        await cache.set("k", {"price": "1"}, 60)
        await cache.delete("k")
        assert await cache.get("k") is None


class TestRedisCache:
    async def test_set_uses_setex(self):
        client = AsyncMock()
        cache = RedisCache(client)

        await cache.set("k", {"price": "1"}, 30)

        client.setex.assert_awaited_once_with("k", 30, json.dumps({"price": "1"}))

    async def test_get_decodes_json(self):
        client = AsyncMock()
        client.get.return_value = '{"price": "1"}'

        assert await RedisCache(client).get("k") == {"price": "1"}

    async def test_get_miss(self):
        client = AsyncMock()
        client.get.return_value = None

        assert await RedisCache(client).get("k") is None
