"""Tech news RSS feeds (The Verge, Ars Technica, TechCrunch).

Feeds carry no engagement metric, so every entry scores 0 and the most
recent entries across all feeds win.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import feedparser

from morningstack.ingest.fetcher import SourceAPI, SourceConfig
from morningstack.ingest.text import strip_html, truncate
from morningstack.models import Article

logger = logging.getLogger(__name__)

FEEDS: list[tuple[str, str]] = [
    ("The Verge", "https://www.theverge.com/rss/index.xml"),
    ("Ars Technica", "https://feeds.arstechnica.com/arstechnica/index"),
    ("TechCrunch", "https://techcrunch.com/feed/"),
]
FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml"
TOP_N = 5
EXCERPT_LENGTH = 300


def extract_thumbnail(entry) -> str | None:
    """Best-effort image for an entry.

    Tries, in order: an ``<enclosure>`` with an image MIME type, the
    ``media:thumbnail`` element, then an image ``media:content`` element.
    """
    for enclosure in entry.get("enclosures", []):
        if enclosure.get("type", "").startswith("image/") and enclosure.get("href"):
            return enclosure["href"]

    for thumb in entry.get("media_thumbnail", []):
        if thumb.get("url"):
            return thumb["url"]

    for media in entry.get("media_content", []):
        medium = media.get("medium") or media.get("type", "")
        if media.get("url") and medium.startswith("image"):
            return media["url"]

    return None


def _published_at(entry) -> datetime | None:
    time_struct = entry.get("published_parsed") or entry.get("updated_parsed")
    if time_struct:
        return datetime(*time_struct[:6], tzinfo=timezone.utc)
    return None


def parse_feed(text: str, outlet: str) -> list[Article]:
    """Convert a feed document into Articles, skipping untitled entries."""
    feed = feedparser.parse(text)
    if feed.bozo and not feed.entries:
        logger.warning("feedparser reported an error for %s: %s", outlet, feed.bozo_exception)
        return []

    articles: list[Article] = []
    for entry in feed.entries:
        link = entry.get("link", "")
        title = entry.get("title", "")
        if not link or not title:
            continue

        published_at = _published_at(entry)
        summary = entry.get("summary", "")

        articles.append(
            Article(
                source="tech_rss",
                title=title,
                url=link,
                score=0.0,
                external_id=entry.get("id") or link,
                thumbnail_url=extract_thumbnail(entry),
                excerpt=truncate(strip_html(summary), EXCERPT_LENGTH) if summary else None,
                metadata={
                    "sourceName": outlet,
                    "publishDate": published_at.isoformat() if published_at else None,
                    "author": entry.get("author"),
                },
            )
        )
    return articles


async def _fetch_feed(api: SourceAPI, outlet: str, url: str) -> list[Article]:
    text = await api.get_text(url, headers={"Accept": FEED_ACCEPT})
    return parse_feed(text, outlet)


async def load_tech_rss(api: SourceAPI, config) -> list[Article]:
    results = await asyncio.gather(
        *(_fetch_feed(api, outlet, url) for outlet, url in FEEDS), return_exceptions=True
    )

    articles: list[Article] = []
    for (outlet, _), result in zip(FEEDS, results):
        if isinstance(result, BaseException):
            logger.warning("RSS feed %s failed: %s", outlet, result)
            continue
        logger.info("Fetched %d entries from %s", len(result), outlet)
        articles.extend(result)

    # ISO timestamps sort chronologically; undated entries go last.
    articles.sort(key=lambda a: a.metadata.get("publishDate") or "", reverse=True)
    return articles


CONFIG = SourceConfig(name="tech_rss", load=load_tech_rss, limit=TOP_N)
