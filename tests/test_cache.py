"""Tests for morningstack.cache with a controllable clock."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from morningstack.cache import (
    CacheStore,
    MemoryCache,
    NullCache,
    RedisCache,
    source_key,
)


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return MemoryCache(stale_grace=600, clock=clock)


def test_source_key():
    assert source_key("hackernews") == "source:hackernews"


@pytest.mark.asyncio
async def test_fresh_hit_before_expiry(cache, clock):
    await cache.set("k", [{"a": 1}], ttl=60)
    clock.now += 59
    assert await cache.get("k") == [{"a": 1}]


@pytest.mark.asyncio
async def test_expired_entry_still_available_stale(cache, clock):
    await cache.set("k", "v", ttl=60)
    clock.now += 61
    assert await cache.get("k") is None
    assert await cache.get_stale("k") == "v"


@pytest.mark.asyncio
async def test_entry_gone_after_stale_grace(cache, clock):
    await cache.set("k", "v", ttl=60)
    clock.now += 60 + 600
    assert await cache.get_stale("k") is None


@pytest.mark.asyncio
async def test_cached_values_do_not_alias(cache):
    value = {"items": [1, 2]}
    await cache.set("k", value, ttl=60)
    value["items"].append(3)
    assert await cache.get("k") == {"items": [1, 2]}


@pytest.mark.asyncio
async def test_missing_key(cache):
    assert await cache.get("nope") is None
    assert await cache.get_stale("nope") is None


@pytest.mark.asyncio
async def test_null_cache_always_misses():
    cache = NullCache()
    await cache.set("k", "v", ttl=60)
    assert await cache.get("k") is None
    assert await cache.get_stale("k") is None


@pytest.mark.asyncio
async def test_redis_errors_are_absorbed():
    client = AsyncMock()
    client.get.side_effect = RedisConnectionError("down")
    client.set.side_effect = RedisConnectionError("down")
    cache = RedisCache("redis://localhost:6379/0", client=client)

    await cache.set("k", "v", ttl=60)
    assert await cache.get("k") is None
    assert await cache.get_stale("k") is None


@pytest.mark.asyncio
async def test_redis_physical_ttl_includes_stale_grace():
    client = AsyncMock()
    cache = RedisCache("redis://localhost:6379/0", stale_grace=300, client=client)

    await cache.set("source:reddit", ["x"], ttl=60)

    args, kwargs = client.set.call_args
    assert args[0] == "source:reddit"
    assert kwargs["ex"] == 360


@pytest.mark.asyncio
async def test_redis_read_decodes_entry():
    client = AsyncMock()
    client.get.return_value = '{"value": [1], "expires_at": 9999999999}'
    cache = RedisCache("redis://localhost:6379/0", client=client)
    assert await cache.get("k") == [1]


@pytest.mark.asyncio
async def test_redis_close():
    client = AsyncMock()
    cache = RedisCache("redis://localhost:6379/0", client=client)
    await cache.close()
    client.aclose.assert_awaited_once()


def test_from_config_picks_backend(config):
    assert isinstance(CacheStore.from_config(config), MemoryCache)

    config.redis_url = "redis://localhost:6379/0"
    assert isinstance(CacheStore.from_config(config), RedisCache)


@pytest.mark.asyncio
async def test_set_nowait_lands_after_drain(cache):
    cache.set_nowait("k", "v", ttl=60)
    await cache.drain()
    assert await cache.get("k") == "v"


@pytest.mark.asyncio
async def test_close_flushes_pending_writes():
    client = AsyncMock()
    cache = RedisCache("redis://localhost:6379/0", client=client)

    cache.set_nowait("source:hatena", ["x"], ttl=60)
    await cache.close()

    client.set.assert_awaited_once()
    client.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_set_nowait_failure_is_absorbed():
    client = AsyncMock()
    client.set.side_effect = RedisConnectionError("down")
    cache = RedisCache("redis://localhost:6379/0", client=client)

    cache.set_nowait("k", "v", ttl=60)
    await cache.drain()
