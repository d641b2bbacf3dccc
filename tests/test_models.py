"""Tests for morningstack.models."""

from datetime import datetime, timezone

import pytest

from morningstack.models import (
    Article,
    CollectionResult,
    Edition,
    EditionStatus,
    EditionType,
    SourceResult,
    StockData,
    WeatherData,
    WidgetSnapshot,
)


def test_article_requires_external_id():
    with pytest.raises(ValueError):
        Article(source="reddit", title="t", url="https://x", score=1, external_id="")


def test_article_negative_score_clamped():
    a = Article(source="reddit", title="t", url="https://x", score=-5, external_id="abc")
    assert a.score == 0


def test_article_dict_roundtrip_keeps_metadata():
    a = Article(
        source="github",
        title="owner/repo",
        url="https://github.com/owner/repo",
        score=42,
        external_id="123",
        metadata={"stars": 42, "language": "Rust"},
    )
    assert Article.from_dict(a.to_dict()) == a


def test_edition_groups_articles_by_source():
    ed = Edition(id="e1", type=EditionType.MORNING, date="2026-02-07")
    ed.articles = [
        Article(source="hackernews", title="a", url="https://a", score=1, external_id="1"),
        Article(source="reddit", title="b", url="https://b", score=1, external_id="2"),
        Article(source="hackernews", title="c", url="https://c", score=1, external_id="3"),
    ]
    grouped = ed.articles_by_source()
    assert list(grouped) == ["hackernews", "reddit"]
    assert [a.title for a in grouped["hackernews"]] == ["a", "c"]


def test_edition_to_dict():
    published = datetime(2026, 2, 7, 0, 0, tzinfo=timezone.utc)
    ed = Edition(
        id="e1",
        type=EditionType.EVENING,
        date="2026-02-07",
        status=EditionStatus.PUBLISHED,
        published_at=published,
    )
    d = ed.to_dict()
    assert d["type"] == "evening"
    assert d["status"] == "published"
    assert d["publishedAt"] == "2026-02-07T00:00:00+00:00"
    assert d["articles"] == []


def test_widget_snapshot_roundtrip():
    snap = WidgetSnapshot(
        weather=WeatherData(city="Tokyo", temperature_celsius=8, condition="Clear", icon_code="01d"),
        stocks=[StockData("^N225", "Nikkei 225", 38000.5, 120.3, 0.32, "JPY")],
    )
    assert WidgetSnapshot.from_dict(snap.to_dict()) == snap


def test_empty_widget_snapshot():
    assert WidgetSnapshot.from_dict({"weather": None, "stocks": []}) == WidgetSnapshot()


def test_collection_result_to_dict():
    result = CollectionResult(
        status="success",
        edition_id="e1",
        edition_type=EditionType.MORNING,
        date="2026-02-07",
        articles_collected=8,
        sources=[
            SourceResult("hackernews", "success", 5),
            SourceResult("youtube", "failure", error="quota"),
        ],
        elapsed_ms=1200,
    )
    d = result.to_dict()
    assert d["status"] == "success"
    assert d["editionId"] == "e1"
    assert d["editionType"] == "morning"
    assert d["articlesCollected"] == 8
    assert d["elapsedMs"] == 1200
    assert d["sources"][0] == {"source": "hackernews", "status": "success", "count": 5}
    assert d["sources"][1]["error"] == "quota"
    assert "reason" not in d and "error" not in d
    assert [s.source for s in result.failed_sources] == ["youtube"]
