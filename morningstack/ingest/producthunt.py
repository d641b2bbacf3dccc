"""Today's top ProductHunt launches via the v2 GraphQL API."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from morningstack.ingest.fetcher import SourceAPI, SourceConfig
from morningstack.models import Article

logger = logging.getLogger(__name__)

GRAPHQL_URL = "https://api.producthunt.com/v2/api/graphql"
TOP_N = 5

POSTS_QUERY = """
query TodayTopPosts($postedAfter: DateTime!, $first: Int!) {
  posts(first: $first, order: VOTES, postedAfter: $postedAfter) {
    edges {
      node {
        id
        name
        tagline
        votesCount
        url
        thumbnail { url }
        topics { edges { node { name } } }
      }
    }
  }
}
"""


def _today_midnight_utc() -> str:
    now = datetime.now(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0).isoformat()


def _make_article(node: dict) -> Article:
    thumbnail = node.get("thumbnail") or {}
    topics = [e["node"]["name"] for e in (node.get("topics") or {}).get("edges", [])]
    votes = node.get("votesCount") or 0

    return Article(
        source="producthunt",
        title=node["name"],
        url=node["url"],
        score=float(votes),
        external_id=node["id"],
        thumbnail_url=thumbnail.get("url"),
        excerpt=node.get("tagline") or None,
        metadata={"votes": votes, "tagline": node.get("tagline"), "topics": topics},
    )


async def load_producthunt(api: SourceAPI, config) -> list[Article]:
    payload = await api.post_json(
        GRAPHQL_URL,
        json={
            "query": POSTS_QUERY,
            "variables": {"postedAfter": _today_midnight_utc(), "first": TOP_N},
        },
        headers={"Authorization": f"Bearer {config.producthunt_api_token}"},
    )
    if payload.get("errors"):
        raise ValueError(f"ProductHunt GraphQL error: {payload['errors']}")

    edges = payload["data"]["posts"]["edges"]
    articles = [_make_article(edge["node"]) for edge in edges]
    logger.info("Fetched %d launches from ProductHunt", len(articles))
    return articles


CONFIG = SourceConfig(
    name="producthunt",
    load=load_producthunt,
    limit=TOP_N,
    credential="producthunt_api_token",
)
