"""Source registry: the article and widget fetchers one edition fans out to."""

from __future__ import annotations

import httpx

from morningstack.cache import CacheStore
from morningstack.ingest import (
    bluesky,
    github,
    hackernews,
    hatena,
    producthunt,
    reddit,
    rss,
    stocks,
    weather,
    youtube,
)
from morningstack.ingest.fetcher import (
    CachedFetcher,
    SourceConfig,
    SourceFetcher,
    StockFetcher,
    WeatherFetcher,
)

ARTICLE_SOURCES: list[SourceConfig] = [
    hackernews.CONFIG,
    github.TRENDING_CONFIG,
    github.PRS_CONFIG,
    reddit.CONFIG,
    rss.CONFIG,
    hatena.CONFIG,
    bluesky.CONFIG,
    youtube.CONFIG,
    producthunt.CONFIG,
]


def build_fetchers(
    cache: CacheStore,
    config,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[SourceFetcher]:
    return [SourceFetcher(source, cache, config, transport=transport) for source in ARTICLE_SOURCES]


def build_widget_fetchers(
    cache: CacheStore,
    config,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[CachedFetcher]:
    return [
        WeatherFetcher(weather.CONFIG, cache, config, transport=transport),
        StockFetcher(stocks.CONFIG, cache, config, transport=transport),
    ]
