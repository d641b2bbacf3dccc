"""Cache-aside store shared by the source fetchers and the collector.

Entries carry their own logical expiry. A fresh read (``get``) treats an
expired entry as absent, while ``get_stale`` still returns it for as long as
the backend physically keeps it (``ttl + stale_grace``). Fetchers use the
stale read as a last resort when their upstream fails.

Every backend error is absorbed here: an unreachable cache behaves like an
empty one and writes silently become no-ops.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

WIDGET_CACHE_KEY = "edition:widgets"


def source_key(name: str) -> str:
    return f"source:{name}"


class CacheStore(ABC):
    def __init__(self, stale_grace: int = 24 * 60 * 60, clock: Callable[[], float] = time.time):
        self.stale_grace = stale_grace
        self._clock = clock
        self._pending: set[asyncio.Task] = set()

    @abstractmethod
    async def _read(self, key: str) -> dict | None: ...

    @abstractmethod
    async def _write(self, key: str, entry: dict, lifetime: int) -> None: ...

    async def get(self, key: str) -> Any | None:
        """Return the cached value, or None if missing or logically expired."""
        entry = await self._safe_read(key)
        if entry is None or entry["expires_at"] <= self._clock():
            return None
        return entry["value"]

    async def get_stale(self, key: str) -> Any | None:
        """Return the cached value even past its expiry, if still stored."""
        entry = await self._safe_read(key)
        return entry["value"] if entry is not None else None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        entry = {"value": value, "expires_at": self._clock() + ttl}
        try:
            await self._write(key, entry, ttl + self.stale_grace)
        except Exception as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)

    def set_nowait(self, key: str, value: Any, ttl: int) -> None:
        """Schedule `set` without waiting for the backend.

        Must be called from a running event loop. `drain` (and `close`) wait
        for scheduled writes to land.
        """
        task = asyncio.create_task(self.set(key, value, ttl))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending)

    async def _safe_read(self, key: str) -> dict | None:
        try:
            entry = await self._read(key)
        except Exception as exc:
            logger.warning("Cache read failed for %s: %s", key, exc)
            return None
        if not isinstance(entry, dict) or "expires_at" not in entry:
            return None
        return entry

    async def close(self) -> None:
        await self.drain()

    @classmethod
    def from_config(cls, config) -> "CacheStore":
        if config.redis_url:
            return RedisCache(config.redis_url, stale_grace=config.cache_stale_grace)
        return MemoryCache(stale_grace=config.cache_stale_grace)


class MemoryCache(CacheStore):
    """Process-local cache; physical lifetime is enforced on read."""

    def __init__(self, stale_grace: int = 24 * 60 * 60, clock: Callable[[], float] = time.time):
        super().__init__(stale_grace, clock)
        self._entries: dict[str, tuple[float, str]] = {}

    async def _read(self, key: str) -> dict | None:
        item = self._entries.get(key)
        if item is None:
            return None
        evict_at, payload = item
        if evict_at <= self._clock():
            del self._entries[key]
            return None
        return json.loads(payload)

    async def _write(self, key: str, entry: dict, lifetime: int) -> None:
        # Round-trip through JSON so cached values never alias caller objects.
        self._entries[key] = (self._clock() + lifetime, json.dumps(entry))


class RedisCache(CacheStore):
    def __init__(self, url: str, stale_grace: int = 24 * 60 * 60, client=None):
        super().__init__(stale_grace)
        self._url = url
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = aioredis.from_url(
                self._url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=5.0,
                socket_connect_timeout=5.0,
            )
        return self._client

    async def _read(self, key: str) -> dict | None:
        try:
            raw = await self.client.get(key)
        except RedisError as exc:
            raise CacheError(str(exc)) from exc
        return json.loads(raw) if raw else None

    async def _write(self, key: str, entry: dict, lifetime: int) -> None:
        try:
            await self.client.set(key, json.dumps(entry), ex=lifetime)
        except RedisError as exc:
            raise CacheError(str(exc)) from exc

    async def close(self) -> None:
        await self.drain()
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class NullCache(CacheStore):
    """A cache that is never available: every read misses."""

    async def _read(self, key: str) -> dict | None:
        return None

    async def _write(self, key: str, entry: dict, lifetime: int) -> None:
        pass


class CacheError(RuntimeError):
    """Raised by a backend when the cache server cannot be reached."""
