"""Normalize, deduplicate and select articles per source."""

from __future__ import annotations

import logging
import math
from dataclasses import replace

from morningstack.models import Article

logger = logging.getLogger(__name__)

# Typical "high engagement" on each platform. Deliberately conservative:
# anything above max clamps to 100.
SCORE_RANGES: dict[str, tuple[float, float]] = {
    "hackernews": (0, 500),
    "github": (0, 5_000),
    "github_prs": (0, 100),
    "reddit": (0, 5_000),
    "tech_rss": (0, 100),
    "hatena": (0, 500),
    "producthunt": (0, 500),
    "bluesky": (0, 200),
    "youtube": (0, 1_000_000),
}

# Articles kept per source in an edition.
TOP_N_PER_SOURCE: dict[str, int] = {
    "hackernews": 5,
    "github": 5,
    "github_prs": 10,
    "reddit": 5,
    "tech_rss": 5,
    "hatena": 5,
    "producthunt": 5,
    "bluesky": 3,
    "youtube": 3,
}


def round_half_up(value: float) -> int:
    """Round halves up; the builtin round() rounds them to even."""
    return math.floor(value + 0.5)


def normalize_score(raw: float, low: float, high: float) -> int:
    scaled = 100 * (raw - low) / (high - low)
    return round_half_up(min(100, max(0, scaled)))


def normalize_scores(articles: list[Article], source: str) -> list[Article]:
    """Map native scores onto 0-100 using the source's fixed range.

    Returns new Article objects; the inputs are left untouched.
    """
    low, high = SCORE_RANGES[source]
    return [replace(a, score=normalize_score(a.score, low, high)) for a in articles]


def select_top(articles: list[Article], k: int) -> list[Article]:
    """Highest-scored ``k`` articles. Ties keep their fetch order."""
    return sorted(articles, key=lambda a: a.score, reverse=True)[:k]


def deduplicate(articles: list[Article]) -> list[Article]:
    """Drop repeated (source, external_id) pairs, keeping the highest score.

    Survivors stay in the position where their id was first seen.
    """
    best: dict[tuple[str, str], Article] = {}
    for article in articles:
        key = (article.source, article.external_id)
        existing = best.get(key)
        if existing is None or article.score > existing.score:
            best[key] = article

    deduped = list(best.values())
    removed = len(articles) - len(deduped)
    if removed:
        logger.info("Removed %d duplicate articles", removed)
    return deduped


def score_and_select(articles: list[Article], source: str) -> list[Article]:
    """Full per-source pass: dedup, normalize, keep the top N."""
    if not articles:
        return []
    unique = deduplicate(articles)
    normalized = normalize_scores(unique, source)
    return select_top(normalized, TOP_N_PER_SOURCE[source])
