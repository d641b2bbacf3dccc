"""GitHub trending repositories and tracked pull requests.

Both sources use the REST API with retry on 403/429 (GitHub signals rate
limiting with either). A token is optional: it raises the rate limit from
60 to 5000 requests an hour but the public API works without one.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from morningstack.ingest.fetcher import SourceAPI, SourceConfig
from morningstack.ingest.text import split_csv, truncate
from morningstack.models import Article

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
TOP_N = 5
PRS_PER_REPO = 10
MAX_PRS = 20


def _headers(token: str | None) -> dict[str, str]:
    headers = {"Accept": "application/vnd.github+json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _repo_to_article(repo: dict) -> Article:
    stars = repo.get("stargazers_count") or 0
    return Article(
        source="github",
        title=repo["full_name"],
        url=repo["html_url"],
        score=float(stars),
        external_id=str(repo["id"]),
        thumbnail_url=(repo.get("owner") or {}).get("avatar_url"),
        excerpt=repo.get("description") or None,
        metadata={
            "name": repo.get("name"),
            "stars": stars,
            "language": repo.get("language"),
            "description": repo.get("description"),
        },
    )


async def load_trending_repos(api: SourceAPI, config) -> list[Article]:
    """Repositories created in the last 7 days, most starred first."""
    since = (datetime.now(timezone.utc) - timedelta(days=7)).date().isoformat()
    data = await api.get_json(
        f"{GITHUB_API}/search/repositories",
        params={"q": f"created:>{since}", "sort": "stars", "order": "desc", "per_page": TOP_N},
        headers=_headers(config.github_token),
    )
    articles = [_repo_to_article(repo) for repo in data.get("items", [])]
    logger.info("Fetched %d trending repositories from GitHub", len(articles))
    return articles


def _pr_to_article(pr: dict, repo_short: str) -> Article:
    state = "merged" if pr.get("merged_at") else "open"
    user = pr.get("user") or {}
    return Article(
        source="github_prs",
        title=pr["title"],
        url=pr["html_url"],
        score=float((pr.get("comments") or 0) + (pr.get("review_comments") or 0)),
        external_id=f"pr-{repo_short}-{pr['number']}",
        thumbnail_url=user.get("avatar_url"),
        excerpt=truncate(pr.get("body"), 200),
        metadata={
            "repo": repo_short,
            "number": pr["number"],
            "state": state,
            "author": user.get("login"),
            "labels": [{"name": l["name"], "color": l.get("color")} for l in pr.get("labels", [])],
            "additions": pr.get("additions") or 0,
            "deletions": pr.get("deletions") or 0,
            "draft": bool(pr.get("draft")),
            "mergedAt": pr.get("merged_at"),
            "updatedAt": pr.get("updated_at"),
        },
    )


async def _fetch_repo_prs(api: SourceAPI, repo: str, token: str) -> list[Article]:
    prs = await api.get_json(
        f"{GITHUB_API}/repos/{repo}/pulls",
        params={"state": "all", "sort": "updated", "direction": "desc", "per_page": PRS_PER_REPO},
        headers=_headers(token),
    )
    repo_short = repo.split("/")[-1]
    # Closed-without-merge PRs are noise.
    return [
        _pr_to_article(pr, repo_short)
        for pr in prs
        if pr.get("state") == "open" or pr.get("merged_at")
    ]


async def load_pull_requests(api: SourceAPI, config) -> list[Article]:
    """Recent open or merged PRs across the tracked repositories."""
    repos = split_csv(config.github_pr_repos)
    results = await asyncio.gather(
        *(_fetch_repo_prs(api, repo, config.github_token) for repo in repos), return_exceptions=True
    )

    articles: list[Article] = []
    for repo, result in zip(repos, results):
        if isinstance(result, BaseException):
            logger.error("GitHub PR fetch failed for %s: %s", repo, result)
            continue
        articles.extend(result)

    logger.info("Fetched %d pull requests from %d repositories", len(articles), len(repos))
    return articles


TRENDING_CONFIG = SourceConfig(name="github", load=load_trending_repos, limit=TOP_N)

PRS_CONFIG = SourceConfig(name="github_prs", load=load_pull_requests, limit=MAX_PRS)
