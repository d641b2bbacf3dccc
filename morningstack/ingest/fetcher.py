"""Generic cache-first source fetcher.

Every upstream (article source or widget) is described by a SourceConfig and
fetched through the same skeleton:

    1. fresh cache read, returned on hit
    2. credential check (no network call when a required key is missing)
    3. upstream call with retry on rate limiting, mapped and capped
    4. background cache write with the source TTL (never awaited by fetch)
    5. on any failure, a stale cache read, else the empty value

fetch() never raises.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import httpx

from morningstack.cache import CacheStore, source_key
from morningstack.models import Article, StockData, WeatherData

logger = logging.getLogger(__name__)

USER_AGENT = "MorningStack/1.0 (news-aggregator)"


class RateLimitedError(Exception):
    """Upstream kept rate limiting us after every retry."""


class MissingCredentialError(Exception):
    pass


class EmptyResultError(Exception):
    pass


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0
    retry_statuses: tuple[int, ...] = (403, 429)

    def delay_for(self, attempt: int, response: httpx.Response) -> float:
        """Seconds to wait before retry number ``attempt`` (0-based)."""
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                return max(0.0, float(retry_after))
            except ValueError:
                pass
        return self.base_delay * 2**attempt


class SourceAPI:
    """httpx client bound to one source's retry policy."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        name: str,
        retry: RetryPolicy,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.name = name
        self.retry = retry
        self._sleep = sleep

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        for attempt in range(self.retry.max_retries + 1):
            resp = await self.client.request(method, url, **kwargs)
            if resp.status_code not in self.retry.retry_statuses:
                resp.raise_for_status()
                return resp

            if attempt == self.retry.max_retries:
                break

            delay = self.retry.delay_for(attempt, resp)
            logger.warning(
                "%s rate limited (%d), retrying in %.1fs (attempt %d/%d)",
                self.name,
                resp.status_code,
                delay,
                attempt + 1,
                self.retry.max_retries,
            )
            await self._sleep(delay)

        raise RateLimitedError(
            f"{self.name} still rate limited after {self.retry.max_retries} retries"
        )

    async def get_json(self, url: str, **kwargs) -> Any:
        resp = await self.request("GET", url, **kwargs)
        return resp.json()

    async def post_json(self, url: str, **kwargs) -> Any:
        resp = await self.request("POST", url, **kwargs)
        return resp.json()

    async def get_text(self, url: str, **kwargs) -> str:
        resp = await self.request("GET", url, **kwargs)
        return resp.text


# A loader receives the bound API and the settings. Required credentials are
# checked before the loader runs, so it may read them unconditionally.
Loader = Callable[[SourceAPI, Any], Awaitable[Any]]


@dataclass
class SourceConfig:
    name: str
    load: Loader
    ttl: int | Callable[[datetime], int] = 60 * 60
    limit: int | None = 5
    credential: str | None = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    cache_key: str = ""
    allow_empty: bool = False

    def __post_init__(self) -> None:
        if not self.cache_key:
            self.cache_key = source_key(self.name)

    def ttl_at(self, now: datetime) -> int:
        return self.ttl(now) if callable(self.ttl) else self.ttl


class CachedFetcher:
    """Cache-first fetch for one source, degrading to stale data then empty."""

    def __init__(
        self,
        source: SourceConfig,
        cache: CacheStore,
        config,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.source = source
        self.cache = cache
        self.settings = config
        self.transport = transport
        self._sleep = sleep

    @property
    def name(self) -> str:
        return self.source.name

    def empty(self) -> Any:
        return []

    def encode(self, value: Any) -> Any:
        return value

    def decode(self, raw: Any) -> Any:
        return raw

    def finalize(self, value: Any) -> Any:
        if self.source.limit is not None:
            value = value[: self.source.limit]
        return value

    def is_empty(self, value: Any) -> bool:
        return not value

    async def fetch(self) -> Any:
        cached = await self._read_cache(stale=False)
        if cached is not None:
            logger.debug("%s served from cache", self.name)
            return cached

        try:
            self._check_credential()
            value = await self._load()
        except MissingCredentialError as exc:
            logger.warning("%s skipped: %s", self.name, exc)
            return await self._fallback()
        except Exception as exc:
            logger.error("%s fetch failed, trying stale cache: %s", self.name, exc)
            return await self._fallback()

        self.cache.set_nowait(self.source.cache_key, self.encode(value), self.source.ttl_at(_utcnow()))
        return value

    def _check_credential(self) -> None:
        attr = self.source.credential
        if attr is not None and not getattr(self.settings, attr, ""):
            raise MissingCredentialError(f"{attr} not set")

    async def _load(self) -> Any:
        async with httpx.AsyncClient(
            timeout=self.settings.http_timeout,
            transport=self.transport,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        ) as client:
            api = SourceAPI(client, self.name, self.source.retry, sleep=self._sleep)
            value = self.finalize(await self.source.load(api, self.settings))

        if self.is_empty(value) and not self.source.allow_empty:
            raise EmptyResultError(f"{self.name} returned no results")
        return value

    async def _read_cache(self, stale: bool) -> Any | None:
        key = self.source.cache_key
        raw = await (self.cache.get_stale(key) if stale else self.cache.get(key))
        if raw is None:
            return None
        try:
            return self.decode(raw)
        except (TypeError, KeyError, ValueError) as exc:
            logger.warning("Discarding malformed cache entry %s: %s", key, exc)
            return None

    async def _fallback(self) -> Any:
        stale = await self._read_cache(stale=True)
        if stale is not None:
            logger.warning("%s using stale cached data", self.name)
            return stale
        return self.empty()


class SourceFetcher(CachedFetcher):
    """Fetcher for an article-producing source."""

    def encode(self, value: list[Article]) -> list[dict]:
        return [a.to_dict() for a in value]

    def decode(self, raw: list[dict]) -> list[Article]:
        return [Article.from_dict(d) for d in raw]

    async def fetch_articles(self) -> list[Article]:
        return await self.fetch()


class WeatherFetcher(CachedFetcher):
    def empty(self) -> None:
        return None

    def finalize(self, value: WeatherData | None) -> WeatherData | None:
        return value

    def encode(self, value: WeatherData) -> dict:
        return asdict(value)

    def decode(self, raw: dict) -> WeatherData:
        return WeatherData(**raw)


class StockFetcher(CachedFetcher):
    def encode(self, value: list[StockData]) -> list[dict]:
        return [asdict(s) for s in value]

    def decode(self, raw: list[dict]) -> list[StockData]:
        return [StockData(**d) for d in raw]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
