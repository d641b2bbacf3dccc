"""Tests for the cache-first fetch skeleton using httpx.MockTransport."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from morningstack.cache import MemoryCache, NullCache
from morningstack.ingest.fetcher import (
    USER_AGENT,
    RetryPolicy,
    SourceConfig,
    SourceFetcher,
    WeatherFetcher,
)
from morningstack.models import Article, WeatherData

ITEMS_URL = "https://api.test/items"


async def _load_items(api, config):
    data = await api.get_json(ITEMS_URL)
    return [
        Article(source="demo", title=i["title"], url=i["url"], score=i["score"], external_id=str(i["id"]))
        for i in data["items"]
    ]


def _items(n):
    return {
        "items": [
            {"id": i, "title": f"Item {i}", "url": f"https://example.com/{i}", "score": i}
            for i in range(n)
        ]
    }


class Recorder:
    """MockTransport handler that replays queued responses and counts calls."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


async def _no_sleep(delay):
    _no_sleep.delays.append(delay)


_no_sleep.delays = []


def _fetcher(handler, cache, config, **overrides):
    source = SourceConfig(name="demo", load=_load_items, **overrides)
    return SourceFetcher(source, cache, config, transport=httpx.MockTransport(handler), sleep=_no_sleep)


@pytest.fixture(autouse=True)
def _reset_delays():
    _no_sleep.delays.clear()


@pytest.mark.asyncio
async def test_fetch_writes_back_to_cache(config):
    handler = Recorder(httpx.Response(200, json=_items(3)))
    cache = MemoryCache()
    fetcher = _fetcher(handler, cache, config)

    articles = await fetcher.fetch()
    await cache.drain()

    assert [a.external_id for a in articles] == ["0", "1", "2"]
    cached = await cache.get("source:demo")
    assert [d["external_id"] for d in cached] == ["0", "1", "2"]
    assert handler.requests[0].headers["User-Agent"] == USER_AGENT


@pytest.mark.asyncio
async def test_fresh_cache_hit_skips_network(config):
    handler = Recorder(httpx.Response(500))
    cache = MemoryCache()
    cached = Article(source="demo", title="Cached", url="https://c", score=1, external_id="c1")
    await cache.set("source:demo", [cached.to_dict()], ttl=60)

    articles = await _fetcher(handler, cache, config).fetch()

    assert articles == [cached]
    assert handler.requests == []


@pytest.mark.asyncio
async def test_result_is_capped_to_limit(config):
    handler = Recorder(httpx.Response(200, json=_items(8)))
    articles = await _fetcher(handler, MemoryCache(), config, limit=5).fetch()
    assert len(articles) == 5


@pytest.mark.asyncio
async def test_retries_on_429_then_succeeds(config):
    handler = Recorder(
        httpx.Response(429),
        httpx.Response(429),
        httpx.Response(200, json=_items(2)),
    )
    articles = await _fetcher(handler, MemoryCache(), config).fetch()

    assert len(articles) == 2
    assert len(handler.requests) == 3
    assert _no_sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_retry_after_header_is_honoured(config):
    handler = Recorder(
        httpx.Response(403, headers={"Retry-After": "7"}),
        httpx.Response(200, json=_items(1)),
    )
    await _fetcher(handler, MemoryCache(), config).fetch()
    assert _no_sleep.delays == [7.0]


@pytest.mark.asyncio
async def test_gives_up_after_max_retries(config):
    handler = Recorder(httpx.Response(429))
    fetcher = _fetcher(handler, MemoryCache(), config, retry=RetryPolicy(max_retries=2))

    assert await fetcher.fetch() == []
    assert len(handler.requests) == 3


@pytest.mark.asyncio
async def test_non_retryable_error_falls_back_to_stale(config):
    clock_now = [1000.0]
    cache = MemoryCache(clock=lambda: clock_now[0])
    stale = Article(source="demo", title="Old", url="https://old", score=1, external_id="old")
    await cache.set("source:demo", [stale.to_dict()], ttl=60)
    clock_now[0] += 120

    handler = Recorder(httpx.Response(500))
    articles = await _fetcher(handler, cache, config).fetch()

    assert articles == [stale]
    assert len(handler.requests) == 1


@pytest.mark.asyncio
async def test_failure_without_cache_returns_empty(config):
    handler = Recorder(httpx.Response(502))
    assert await _fetcher(handler, MemoryCache(), config).fetch() == []


@pytest.mark.asyncio
async def test_empty_upstream_result_is_not_cached(config):
    handler = Recorder(httpx.Response(200, json={"items": []}))
    cache = MemoryCache()

    assert await _fetcher(handler, cache, config).fetch() == []
    assert await cache.get_stale("source:demo") is None


@pytest.mark.asyncio
async def test_missing_credential_makes_no_request(config):
    config.youtube_api_key = ""
    handler = Recorder(httpx.Response(200, json=_items(1)))

    articles = await _fetcher(handler, MemoryCache(), config, credential="youtube_api_key").fetch()

    assert articles == []
    assert handler.requests == []


@pytest.mark.asyncio
async def test_works_without_cache(config):
    handler = Recorder(httpx.Response(200, json=_items(2)))
    fetcher = _fetcher(handler, NullCache(), config)

    assert len(await fetcher.fetch()) == 2
    assert len(await fetcher.fetch()) == 2
    assert len(handler.requests) == 2


@pytest.mark.asyncio
async def test_malformed_cache_entry_is_ignored(config):
    cache = MemoryCache()
    await cache.set("source:demo", [{"unexpected": True}], ttl=60)
    handler = Recorder(httpx.Response(200, json=_items(1)))

    articles = await _fetcher(handler, cache, config).fetch()
    assert [a.external_id for a in articles] == ["0"]


@pytest.mark.asyncio
async def test_weather_fetcher_empty_value_is_none(config):
    async def load(api, cfg):
        await api.get_json("https://api.test/weather")

    source = SourceConfig(name="weather", load=load, limit=None)
    fetcher = WeatherFetcher(source, MemoryCache(), config, transport=httpx.MockTransport(Recorder(httpx.Response(500))))
    assert await fetcher.fetch() is None


@pytest.mark.asyncio
async def test_weather_fetcher_caches_dataclass(config):
    async def load(api, cfg):
        return WeatherData(city="Tokyo", temperature_celsius=9, condition="Clouds", icon_code="03d")

    cache = MemoryCache()
    source = SourceConfig(name="weather", load=load, limit=None)
    fetcher = WeatherFetcher(source, cache, config)

    weather = await fetcher.fetch()
    await cache.drain()
    assert weather.city == "Tokyo"
    assert await fetcher.fetch() == weather
    assert (await cache.get("source:weather"))["icon_code"] == "03d"


class SlowCache(MemoryCache):
    """Cache whose writes hang until released."""

    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()

    async def _write(self, key, entry, lifetime):
        await self.release.wait()
        await super()._write(key, entry, lifetime)


@pytest.mark.asyncio
async def test_fetch_does_not_wait_for_cache_write(config):
    handler = Recorder(httpx.Response(200, json=_items(2)))
    cache = SlowCache()

    articles = await asyncio.wait_for(_fetcher(handler, cache, config).fetch(), timeout=1)
    assert len(articles) == 2
    assert await cache.get_stale("source:demo") is None

    cache.release.set()
    await cache.drain()
    assert len(await cache.get("source:demo")) == 2


@pytest.mark.asyncio
async def test_fetcher_takes_source_and_settings_by_keyword(config):
    source = SourceConfig(name="demo", load=_load_items)
    fetcher = SourceFetcher(
        source=source,
        cache=NullCache(),
        config=config,
        transport=httpx.MockTransport(Recorder(httpx.Response(200, json=_items(1)))),
    )

    assert fetcher.source is source
    assert fetcher.settings is config
    assert fetcher.name == "demo"
    assert len(await fetcher.fetch_articles()) == 1
