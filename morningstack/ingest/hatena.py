"""Hatena Bookmark hot entries (technology category) via RDF feed."""

from __future__ import annotations

import logging

import feedparser

from morningstack.ingest.fetcher import SourceAPI, SourceConfig
from morningstack.ingest.text import strip_html, truncate
from morningstack.models import Article

logger = logging.getLogger(__name__)

HATENA_RSS_URL = "https://b.hatena.ne.jp/hotentry/it.rss"
FEED_ACCEPT = "application/rss+xml, application/rdf+xml, application/xml, text/xml"
TOP_N = 5


def _bookmark_count(entry) -> int:
    # feedparser exposes <hatena:bookmarkcount> as "hatena_bookmarkcount".
    try:
        return int(entry.get("hatena_bookmarkcount", 0))
    except (TypeError, ValueError):
        return 0


def parse_hotentries(text: str) -> list[Article]:
    feed = feedparser.parse(text)
    if feed.bozo and not feed.entries:
        logger.warning("feedparser reported an error for Hatena: %s", feed.bozo_exception)
        return []

    articles: list[Article] = []
    for entry in feed.entries:
        link = entry.get("link", "")
        title = entry.get("title", "")
        if not link or not title:
            continue

        count = _bookmark_count(entry)
        summary = entry.get("summary", "")
        articles.append(
            Article(
                source="hatena",
                title=title,
                url=link,
                score=float(count),
                external_id=entry.get("id") or link,
                thumbnail_url=entry.get("hatena_imageurl") or None,
                excerpt=truncate(strip_html(summary), 300) if summary else None,
                metadata={"bookmarkCount": count, "category": "technology"},
            )
        )

    articles.sort(key=lambda a: a.score, reverse=True)
    return articles


async def load_hatena(api: SourceAPI, config) -> list[Article]:
    text = await api.get_text(HATENA_RSS_URL, headers={"Accept": FEED_ACCEPT})
    articles = parse_hotentries(text)
    logger.info("Fetched %d hot entries from Hatena", len(articles))
    return articles


CONFIG = SourceConfig(name="hatena", load=load_hatena, limit=TOP_N)
