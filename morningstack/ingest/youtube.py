"""Trending Science & Technology videos from the YouTube Data API v3.

Uses videos.list with chart=mostPopular (1 quota unit) rather than
search.list (100 units); the key has a 10,000 unit daily quota.
"""

from __future__ import annotations

import logging
import re

import httpx

from morningstack.ingest.fetcher import RetryPolicy, SourceAPI, SourceConfig
from morningstack.ingest.text import truncate
from morningstack.models import Article

logger = logging.getLogger(__name__)

VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"
WATCH_URL_TEMPLATE = "https://www.youtube.com/watch?v={id}"
SCIENCE_TECH_CATEGORY = "28"
TOP_N = 3

_DURATION_RE = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")


def format_duration(iso: str) -> str:
    """Render an ISO 8601 duration as h:mm:ss or m:ss.

    >>> format_duration("PT1H2M34S")
    '1:02:34'
    >>> format_duration("PT45S")
    '0:45'
    """
    match = _DURATION_RE.fullmatch(iso or "")
    if not match:
        return iso
    h, m, s = (int(g or 0) for g in match.groups())
    if h:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m}:{s:02d}"


def pick_thumbnail(thumbnails: dict) -> str | None:
    """Prefer high (480x360), then medium (320x180), then default (120x90)."""
    for size in ("high", "medium", "default"):
        url = (thumbnails.get(size) or {}).get("url")
        if url:
            return url
    return None


def _make_article(item: dict) -> Article:
    snippet = item["snippet"]
    stats = item.get("statistics") or {}
    views = int(stats.get("viewCount", 0))

    return Article(
        source="youtube",
        title=snippet["title"],
        url=WATCH_URL_TEMPLATE.format(id=item["id"]),
        score=float(views),
        external_id=item["id"],
        thumbnail_url=pick_thumbnail(snippet.get("thumbnails") or {}),
        excerpt=truncate(snippet.get("description"), 200),
        metadata={
            "channel": snippet.get("channelTitle"),
            "views": views,
            "likes": int(stats.get("likeCount", 0)),
            "comments": int(stats.get("commentCount", 0)),
            "duration": format_duration((item.get("contentDetails") or {}).get("duration", "")),
        },
    )


async def load_youtube(api: SourceAPI, config) -> list[Article]:
    try:
        data = await api.get_json(
            VIDEOS_URL,
            params={
                "part": "snippet,statistics,contentDetails",
                "chart": "mostPopular",
                "videoCategoryId": SCIENCE_TECH_CATEGORY,
                "regionCode": "US",
                "maxResults": TOP_N,
                "key": config.youtube_api_key,
            },
        )
    except httpx.HTTPStatusError as exc:
        if exc.response.status_code == 403 and "quotaExceeded" in exc.response.text:
            logger.warning("YouTube daily quota exceeded")
        raise

    articles = [_make_article(item) for item in data.get("items", [])]
    logger.info("Fetched %d videos from YouTube", len(articles))
    return articles


# A 403 here means quota exhaustion, which no short backoff will fix.
CONFIG = SourceConfig(
    name="youtube",
    load=load_youtube,
    limit=TOP_N,
    credential="youtube_api_key",
    retry=RetryPolicy(retry_statuses=(429,)),
)
