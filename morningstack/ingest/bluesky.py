"""Top tech posts on Bluesky via the public AppView search API (no auth)."""

from __future__ import annotations

import logging

from morningstack.ingest.fetcher import SourceAPI, SourceConfig
from morningstack.ingest.text import truncate
from morningstack.models import Article

logger = logging.getLogger(__name__)

SEARCH_URL = "https://public.api.bsky.app/xrpc/app.bsky.feed.searchPosts"
POST_URL_TEMPLATE = "https://bsky.app/profile/{handle}/post/{rkey}"
TOP_N = 3


def post_url(handle: str, at_uri: str) -> str:
    """Web URL for a post; the rkey is the last segment of at://did/collection/rkey."""
    return POST_URL_TEMPLATE.format(handle=handle, rkey=at_uri.rsplit("/", 1)[-1])


def _make_article(post: dict) -> Article:
    author = post.get("author") or {}
    handle = author.get("handle", "")
    text = (post.get("record") or {}).get("text", "")
    likes = post.get("likeCount") or 0

    return Article(
        source="bluesky",
        title=truncate(text, 100, "…") or f"Post by @{handle}",
        url=post_url(handle, post["uri"]),
        score=float(likes),
        external_id=post["cid"],
        thumbnail_url=author.get("avatar"),
        excerpt=truncate(text, 200, "…"),
        metadata={
            "author": handle,
            "displayName": author.get("displayName") or handle,
            "likes": likes,
            "reposts": post.get("repostCount") or 0,
            "replies": post.get("replyCount") or 0,
        },
    )


async def load_bluesky(api: SourceAPI, config) -> list[Article]:
    data = await api.get_json(
        SEARCH_URL,
        params={"q": config.bluesky_query, "sort": "top", "limit": TOP_N},
        headers={"Accept": "application/json"},
    )
    articles = [_make_article(post) for post in data.get("posts", [])]
    logger.info("Fetched %d posts from Bluesky", len(articles))
    return articles


CONFIG = SourceConfig(name="bluesky", load=load_bluesky, limit=TOP_N)
