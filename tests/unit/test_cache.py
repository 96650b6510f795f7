# File: tests/unit/test_cache.py
"""
Unit tests for CacheManager with and without Redis.
"""

import fnmatch

from redis.exceptions import ConnectionError as RedisConnectionError

from dashboard.dependencies import CacheManager


class SharedRedis:
    """Minimal async Redis stand-in shared by several workers."""

    def __init__(self):
        self.data = {}

    async def get(self, key):
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self.data[key] = value

    async def delete(self, *keys):
        for key in keys:
            self.data.pop(key, None)

    async def scan_iter(self, match="*"):
        for key in list(self.data):
            if fnmatch.fnmatch(key, match):
                yield key


class BrokenRedis(SharedRedis):
    async def get(self, key):
        raise RedisConnectionError("connection refused")


# ==================== Memory Cache ====================

class TestMemoryCache:
    """Tests for the in-memory cache used without Redis."""

    async def test_set_get_invalidate(self):
        cache = CacheManager()
        key = cache.user_key("user-1", "dashboard")
        await cache.set(key, {"total_tasks": 1})

        assert await cache.get(key) == {"total_tasks": 1}
        await cache.invalidate_user("user-1")
        assert await cache.get(key) is None

    async def test_invalidation_is_per_user(self):
        cache = CacheManager()
        await cache.set(cache.user_key("user-1", "dashboard"), 1)
        await cache.set(cache.user_key("user-10", "dashboard"), 10)

        await cache.invalidate_user("user-1")
        assert await cache.get(cache.user_key("user-10", "dashboard")) == 10

    async def test_disabled_cache(self):
        cache = CacheManager(enabled=False)
        await cache.set("intensify:user-1:dashboard", 1)
        assert await cache.get("intensify:user-1:dashboard") is None


# ==================== Redis Cache ====================

class TestRedisCache:
    """Tests for workers sharing one Redis."""

    async def test_invalidation_reaches_other_workers(self):
        shared = SharedRedis()
        writer, reader = CacheManager(shared), CacheManager(shared)
        key = writer.user_key("user-1", "dashboard")

        await reader.set(key, {"total_tasks": 0})
        assert await reader.get(key) == {"total_tasks": 0}

        await writer.invalidate_user("user-1")
        assert await reader.get(key) is None

    async def test_redis_values_are_not_kept_in_memory(self):
        cache = CacheManager(SharedRedis())
        await cache.set(cache.user_key("user-1", "insights"), {"needsRecovery": False})

        assert cache.memory_cache == {}

    async def test_redis_error_is_a_miss(self):
        cache = CacheManager(BrokenRedis())
        key = cache.user_key("user-1", "dashboard")
        cache.memory_cache[key] = {"data": "stale", "timestamp": 0, "ttl": 10 ** 12}

        assert await cache.get(key) is None
