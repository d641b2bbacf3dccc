"""Reddit hot posts via the public JSON listing."""

from __future__ import annotations

import logging

from morningstack.ingest.fetcher import SourceAPI, SourceConfig
from morningstack.ingest.text import split_csv, truncate
from morningstack.models import Article

logger = logging.getLogger(__name__)

# r/a+b+c returns one combined listing for all subreddits.
LISTING_URL_TEMPLATE = "https://www.reddit.com/r/{subreddits}/hot.json"
THREAD_URL_TEMPLATE = "https://www.reddit.com{permalink}"
LISTING_LIMIT = 25
TOP_N = 5


def _is_valid_post(post: dict) -> bool:
    """Skip NSFW, removed and pinned mod posts."""
    if post.get("over_18") or post.get("stickied"):
        return False
    if post.get("removed_by_category"):
        return False
    return post.get("selftext") != "[removed]"


def _thumbnail(post: dict) -> str | None:
    # Reddit uses sentinels like "self", "default", "nsfw" when there is no image.
    thumb = post.get("thumbnail") or ""
    return thumb if thumb.startswith(("http://", "https://")) else None


def _make_article(post: dict) -> Article:
    if post.get("is_self"):
        url = THREAD_URL_TEMPLATE.format(permalink=post["permalink"])
    else:
        url = post["url"]

    return Article(
        source="reddit",
        title=post["title"],
        url=url,
        score=float(post.get("score") or 0),
        external_id=post["id"],
        thumbnail_url=_thumbnail(post),
        excerpt=truncate(post.get("selftext"), 200),
        metadata={
            "subreddit": post.get("subreddit"),
            "upvotes": post.get("score") or 0,
            "comments": post.get("num_comments") or 0,
            "author": post.get("author"),
        },
    )


async def load_reddit(api: SourceAPI, config) -> list[Article]:
    """Fetch the hottest posts across all configured subreddits."""
    subreddits = "+".join(split_csv(config.reddit_subreddits))
    data = await api.get_json(
        LISTING_URL_TEMPLATE.format(subreddits=subreddits),
        params={"limit": LISTING_LIMIT},
    )

    posts = [child["data"] for child in data["data"]["children"]]
    posts = [p for p in posts if _is_valid_post(p)]
    posts.sort(key=lambda p: p.get("score") or 0, reverse=True)

    articles = [_make_article(p) for p in posts[:TOP_N]]
    logger.info("Fetched %d posts from r/%s", len(articles), subreddits)
    return articles


CONFIG = SourceConfig(name="reddit", load=load_reddit, limit=TOP_N)
