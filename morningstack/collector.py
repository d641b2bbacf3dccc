"""Edition collection: the twice-daily job that builds one edition.

One ``collect()`` call runs the whole lifecycle for the current slot:

    determine slot -> idempotency check -> draft -> concurrent fan-out
    -> normalize + top-K per source -> batch insert -> widget cache
    -> publish

Source failures are isolated and reported in the summary. Anything else
that goes wrong is caught at the top and reported as an ``error`` result;
the draft then stays visible through ``EditionStore.list_drafts()`` and must
be deleted before the slot can be collected again.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

from morningstack.cache import WIDGET_CACHE_KEY, CacheStore
from morningstack.db import EditionExistsError, EditionStore
from morningstack.ingest.fetcher import CachedFetcher
from morningstack.ingest.scorer import score_and_select
from morningstack.models import (
    Article,
    CollectionResult,
    EditionType,
    SourceResult,
    StockData,
    WeatherData,
    WidgetSnapshot,
)

logger = logging.getLogger(__name__)


def determine_slot(now: datetime, tz: str, cutover_hour: int) -> tuple[EditionType, str]:
    """Edition type and ISO date for ``now`` in the reference timezone.

    Before ``cutover_hour`` local time is the morning edition, from then on
    the evening edition.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(ZoneInfo(tz))
    edition_type = EditionType.MORNING if local.hour < cutover_hour else EditionType.EVENING
    return edition_type, local.date().isoformat()


class EditionCollector:
    def __init__(
        self,
        store: EditionStore,
        cache: CacheStore,
        fetchers: list[CachedFetcher],
        widget_fetchers: list[CachedFetcher],
        config,
    ):
        self.store = store
        self.cache = cache
        self.fetchers = fetchers
        self.widget_fetchers = widget_fetchers
        self.settings = config

    async def collect(self, now: datetime | None = None) -> CollectionResult:
        started = time.monotonic()
        now = now or datetime.now(timezone.utc)
        edition_type, edition_date = determine_slot(
            now, self.settings.timezone, self.settings.edition_cutover_hour
        )
        result = CollectionResult(status="error", edition_type=edition_type, date=edition_date)

        logger.info("Starting %s edition collection for %s", edition_type.value, edition_date)

        try:
            existing = await asyncio.to_thread(self.store.find_edition, edition_type, edition_date)
            if existing is not None:
                logger.info(
                    "%s edition for %s already exists (%s), skipping",
                    edition_type.value,
                    edition_date,
                    existing.id,
                )
                return self._skipped(result, existing.id, started)

            try:
                edition = await asyncio.to_thread(self.store.create_draft, edition_type, edition_date)
            except EditionExistsError:
                # Another invocation inserted between our check and insert.
                winner = await asyncio.to_thread(self.store.find_edition, edition_type, edition_date)
                logger.info("Lost draft race for %s %s, skipping", edition_type.value, edition_date)
                return self._skipped(result, winner.id if winner else None, started)

            result.edition_id = edition.id
            logger.info("Created draft edition %s", edition.id)

            article_results, widget_results = await asyncio.gather(
                asyncio.gather(*(self._run_fetcher(f) for f in self.fetchers)),
                asyncio.gather(*(self._run_fetcher(f) for f in self.widget_fetchers)),
            )

            selected = self._select_articles(article_results, result.sources)
            await asyncio.to_thread(self.store.insert_articles, edition.id, selected)
            result.articles_collected = len(selected)

            self._cache_widgets(widget_results, result.sources)

            if not selected and await self._hold_empty_edition(edition.id, result):
                result.elapsed_ms = _elapsed_ms(started)
                return result

            await asyncio.to_thread(self.store.publish, edition.id, now)
            result.status = "success"
        except Exception as exc:
            result.status = "error"
            result.error = str(exc) or exc.__class__.__name__
            result.elapsed_ms = _elapsed_ms(started)
            logger.exception("Collection failed after %dms", result.elapsed_ms)
            return result

        result.elapsed_ms = _elapsed_ms(started)
        logger.info(
            "Edition %s published with %d articles in %dms (%d source failures)",
            result.edition_id,
            result.articles_collected,
            result.elapsed_ms,
            len(result.failed_sources),
        )
        return result

    async def _run_fetcher(self, fetcher: CachedFetcher) -> tuple[str, Any, str | None]:
        """Run one fetcher under the per-source timeout, never raising."""
        timeout = self.settings.source_timeout
        try:
            value = await asyncio.wait_for(fetcher.fetch(), timeout=timeout)
            return fetcher.name, value, None
        except asyncio.TimeoutError:
            logger.error("Source '%s' timed out after %.0fs", fetcher.name, timeout)
            return fetcher.name, None, f"Timed out after {timeout:g}s"
        except Exception as exc:
            logger.error("Source '%s' failed: %s", fetcher.name, exc)
            return fetcher.name, None, str(exc) or exc.__class__.__name__

    def _select_articles(
        self,
        outcomes: list[tuple[str, Any, str | None]],
        source_results: list[SourceResult],
    ) -> list[Article]:
        selected: list[Article] = []
        for name, articles, error in outcomes:
            if error is None and articles:
                top = score_and_select(articles, name)
                selected.extend(top)
                source_results.append(SourceResult(source=name, status="success", count=len(top)))
                logger.info("Source '%s' contributed %d articles", name, len(top))
            else:
                error = error or "No articles returned"
                logger.error("Source '%s' failed: %s", name, error)
                source_results.append(SourceResult(source=name, status="failure", error=error))
        return selected

    def _cache_widgets(
        self,
        outcomes: list[tuple[str, Any, str | None]],
        source_results: list[SourceResult],
    ) -> None:
        snapshot = WidgetSnapshot()
        for name, value, error in outcomes:
            if isinstance(value, WeatherData):
                snapshot.weather = value
                count = 1
            elif isinstance(value, list) and value and isinstance(value[0], StockData):
                snapshot.stocks = value
                count = len(value)
            else:
                count = 0

            if count:
                source_results.append(SourceResult(source=name, status="success", count=count))
            else:
                source_results.append(
                    SourceResult(source=name, status="failure", error=error or "No data")
                )

        self.cache.set_nowait(WIDGET_CACHE_KEY, snapshot.to_dict(), self.settings.widget_cache_ttl)

    async def _hold_empty_edition(self, edition_id: str, result: CollectionResult) -> bool:
        """Apply the empty-edition policy. True if the edition must not publish."""
        policy = self.settings.empty_edition_policy
        if policy == "publish":
            logger.warning("All sources failed; publishing empty edition %s", edition_id)
            return False

        result.status = "empty"
        result.reason = "No articles collected"
        if policy == "rollback":
            await asyncio.to_thread(self.store.delete_edition, edition_id)
            result.edition_id = None
            logger.warning("All sources failed; rolled back edition %s", edition_id)
        else:
            logger.warning("All sources failed; leaving edition %s in draft", edition_id)
        return True

    @staticmethod
    def _skipped(result: CollectionResult, edition_id: str | None, started: float) -> CollectionResult:
        result.status = "skipped"
        result.reason = "Edition already exists"
        result.edition_id = edition_id
        result.elapsed_ms = _elapsed_ms(started)
        return result


async def get_widget_snapshot(cache: CacheStore) -> WidgetSnapshot:
    """Widgets as cached by the last collection run (empty when absent)."""
    raw = await cache.get(WIDGET_CACHE_KEY)
    if raw is None:
        return WidgetSnapshot()
    return WidgetSnapshot.from_dict(raw)


def build_collector(config, cache: CacheStore | None = None) -> EditionCollector:
    from morningstack.ingest.sources import build_fetchers, build_widget_fetchers

    cache = cache or CacheStore.from_config(config)
    store = EditionStore(config.database_path)
    store.init_db()
    return EditionCollector(
        store=store,
        cache=cache,
        fetchers=build_fetchers(cache, config),
        widget_fetchers=build_widget_fetchers(cache, config),
        config=config,
    )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
