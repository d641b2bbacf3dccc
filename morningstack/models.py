from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum

ARTICLE_SOURCES = (
    "hackernews",
    "github",
    "github_prs",
    "reddit",
    "tech_rss",
    "hatena",
    "bluesky",
    "youtube",
    "producthunt",
)


class EditionType(str, Enum):
    MORNING = "morning"
    EVENING = "evening"


class EditionStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


@dataclass
class Article:
    source: str
    title: str
    url: str
    score: float
    external_id: str
    thumbnail_url: str | None = None
    excerpt: str | None = None
    metadata: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.external_id:
            raise ValueError(f"{self.source} article {self.url!r} has no external id")
        if self.score < 0:
            self.score = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Article:
        return cls(**data)


@dataclass
class Edition:
    id: str
    type: EditionType
    date: str
    status: EditionStatus = EditionStatus.DRAFT
    published_at: datetime | None = None
    articles: list[Article] = field(default_factory=list)

    def articles_by_source(self) -> dict[str, list[Article]]:
        grouped: dict[str, list[Article]] = {}
        for article in self.articles:
            grouped.setdefault(article.source, []).append(article)
        return grouped

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "date": self.date,
            "status": self.status.value,
            "publishedAt": self.published_at.isoformat() if self.published_at else None,
            "articles": [a.to_dict() for a in self.articles],
        }


@dataclass
class WeatherData:
    city: str
    temperature_celsius: int
    condition: str
    icon_code: str


@dataclass
class StockData:
    symbol: str
    name: str
    price: float
    change_amount: float
    change_percent: float
    currency: str


@dataclass
class WidgetSnapshot:
    weather: WeatherData | None = None
    stocks: list[StockData] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "weather": asdict(self.weather) if self.weather else None,
            "stocks": [asdict(s) for s in self.stocks],
        }

    @classmethod
    def from_dict(cls, data: dict) -> WidgetSnapshot:
        weather = data.get("weather")
        return cls(
            weather=WeatherData(**weather) if weather else None,
            stocks=[StockData(**s) for s in data.get("stocks", [])],
        )


@dataclass
class SourceResult:
    source: str
    status: str
    count: int = 0
    error: str | None = None

    def to_dict(self) -> dict:
        d = {"source": self.source, "status": self.status, "count": self.count}
        if self.error is not None:
            d["error"] = self.error
        return d


@dataclass
class CollectionResult:
    """Summary of one collection run, returned by the trigger as JSON."""

    status: str
    edition_id: str | None = None
    edition_type: EditionType | None = None
    date: str | None = None
    articles_collected: int = 0
    sources: list[SourceResult] = field(default_factory=list)
    elapsed_ms: int = 0
    reason: str | None = None
    error: str | None = None

    @property
    def failed_sources(self) -> list[SourceResult]:
        return [s for s in self.sources if s.status == "failure"]

    def to_dict(self) -> dict:
        d = {
            "status": self.status,
            "editionId": self.edition_id,
            "editionType": self.edition_type.value if self.edition_type else None,
            "date": self.date,
            "articlesCollected": self.articles_collected,
            "sources": [s.to_dict() for s in self.sources],
            "elapsedMs": self.elapsed_ms,
        }
        if self.reason is not None:
            d["reason"] = self.reason
        if self.error is not None:
            d["error"] = self.error
        return d
