"""Hacker News front page via the Algolia search API."""

from __future__ import annotations

import logging

from morningstack.ingest.fetcher import SourceAPI, SourceConfig
from morningstack.ingest.text import strip_html, truncate
from morningstack.models import Article

logger = logging.getLogger(__name__)

HN_SEARCH_URL = "https://hn.algolia.com/api/v1/search"
HN_ITEM_URL = "https://news.ycombinator.com/item?id={id}"
TOP_N = 5


def _make_article(hit: dict) -> Article | None:
    """Convert an Algolia hit into an Article, or None if unusable."""
    title = hit.get("title")
    object_id = hit.get("objectID")
    if not title or not object_id:
        return None

    # Self-posts (Ask HN, etc.) have no url and link to the comments page.
    url = hit.get("url") or HN_ITEM_URL.format(id=object_id)
    story_text = hit.get("story_text")

    return Article(
        source="hackernews",
        title=title,
        url=url,
        score=float(hit.get("points") or 0),
        external_id=str(object_id),
        excerpt=truncate(strip_html(story_text), 300) if story_text else None,
        metadata={
            "comments": hit.get("num_comments") or 0,
            "author": hit.get("author"),
        },
    )


async def load_hackernews(api: SourceAPI, config) -> list[Article]:
    data = await api.get_json(HN_SEARCH_URL, params={"tags": "front_page", "hitsPerPage": TOP_N})

    articles = []
    for hit in data.get("hits", []):
        article = _make_article(hit)
        if article is not None:
            articles.append(article)

    logger.info("Fetched %d stories from Hacker News", len(articles))
    return articles


CONFIG = SourceConfig(name="hackernews", load=load_hackernews, limit=TOP_N)
