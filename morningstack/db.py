from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone

from morningstack.models import Article, Edition, EditionStatus, EditionType


class EditionExistsError(Exception):
    """An edition already exists for the requested (type, date) slot."""

    def __init__(self, edition_type: EditionType, date: str):
        super().__init__(f"{edition_type.value} edition for {date} already exists")
        self.edition_type = edition_type
        self.date = date


class EditionStore:
    """Editions and their articles in SQLite.

    The UNIQUE (type, date) constraint is the idempotency guarantee: a
    second draft for the same slot fails inside the database even when two
    collectors race past the existence check.
    """

    def __init__(self, database_path: str):
        self.database_path = database_path

    def get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.database_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def init_db(self) -> None:
        conn = self.get_connection()
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS editions (
                id TEXT PRIMARY KEY,
                type TEXT NOT NULL CHECK (type IN ('morning', 'evening')),
                date TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'draft' CHECK (status IN ('draft', 'published')),
                published_at TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE (type, date)
            );

            CREATE TABLE IF NOT EXISTS articles (
                id TEXT PRIMARY KEY,
                edition_id TEXT NOT NULL REFERENCES editions(id) ON DELETE CASCADE,
                source TEXT NOT NULL,
                title TEXT NOT NULL,
                url TEXT NOT NULL,
                thumbnail_url TEXT,
                excerpt TEXT,
                score INTEGER DEFAULT 0,
                external_id TEXT,
                metadata JSON,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS articles_edition_idx ON articles(edition_id);
            """
        )
        conn.close()

    def find_edition(self, edition_type: EditionType, date: str) -> Edition | None:
        """Any edition for the slot, draft or published."""
        conn = self.get_connection()
        row = conn.execute(
            "SELECT * FROM editions WHERE type = ? AND date = ?",
            (edition_type.value, date),
        ).fetchone()
        conn.close()
        return _row_to_edition(row) if row else None

    def create_draft(self, edition_type: EditionType, date: str) -> Edition:
        edition = Edition(id=str(uuid.uuid4()), type=edition_type, date=date)
        conn = self.get_connection()
        try:
            conn.execute(
                "INSERT INTO editions (id, type, date, status) VALUES (?, ?, ?, ?)",
                (edition.id, edition_type.value, date, EditionStatus.DRAFT.value),
            )
            conn.commit()
        except sqlite3.IntegrityError as exc:
            raise EditionExistsError(edition_type, date) from exc
        finally:
            conn.close()
        return edition

    def insert_articles(self, edition_id: str, articles: list[Article]) -> int:
        """Write all articles for an edition in one transaction."""
        if not articles:
            return 0
        conn = self.get_connection()
        try:
            with conn:
                conn.executemany(
                    """
                    INSERT INTO articles
                        (id, edition_id, source, title, url, thumbnail_url, excerpt, score, external_id, metadata)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            str(uuid.uuid4()),
                            edition_id,
                            a.source,
                            a.title,
                            a.url,
                            a.thumbnail_url,
                            a.excerpt,
                            round(a.score),
                            a.external_id,
                            json.dumps(a.metadata),
                        )
                        for a in articles
                    ],
                )
        finally:
            conn.close()
        return len(articles)

    def publish(self, edition_id: str, published_at: datetime | None = None) -> None:
        # Stored as UTC so ISO strings sort chronologically.
        published_at = (published_at or datetime.now(timezone.utc)).astimezone(timezone.utc)
        conn = self.get_connection()
        cursor = conn.execute(
            "UPDATE editions SET status = ?, published_at = ? WHERE id = ? AND status = ?",
            (EditionStatus.PUBLISHED.value, published_at.isoformat(), edition_id, EditionStatus.DRAFT.value),
        )
        conn.commit()
        conn.close()
        if cursor.rowcount != 1:
            raise ValueError(f"Edition {edition_id} is not a draft")

    def get_edition(self, edition_type: EditionType, date: str) -> Edition | None:
        """Published edition for the slot with its articles, best first."""
        conn = self.get_connection()
        row = conn.execute(
            "SELECT * FROM editions WHERE type = ? AND date = ? AND status = ?",
            (edition_type.value, date, EditionStatus.PUBLISHED.value),
        ).fetchone()
        if row is None:
            conn.close()
            return None
        edition = _row_to_edition(row)
        edition.articles = self._load_articles(conn, edition.id)
        conn.close()
        return edition

    def get_latest_edition(self) -> Edition | None:
        conn = self.get_connection()
        row = conn.execute(
            "SELECT * FROM editions WHERE status = ? ORDER BY published_at DESC LIMIT 1",
            (EditionStatus.PUBLISHED.value,),
        ).fetchone()
        if row is None:
            conn.close()
            return None
        edition = _row_to_edition(row)
        edition.articles = self._load_articles(conn, edition.id)
        conn.close()
        return edition

    def list_drafts(self) -> list[Edition]:
        """Editions stuck in draft, oldest first."""
        conn = self.get_connection()
        rows = conn.execute(
            "SELECT * FROM editions WHERE status = ? ORDER BY created_at",
            (EditionStatus.DRAFT.value,),
        ).fetchall()
        conn.close()
        return [_row_to_edition(r) for r in rows]

    def list_editions(self, date: str) -> list[Edition]:
        conn = self.get_connection()
        rows = conn.execute("SELECT * FROM editions WHERE date = ? ORDER BY type", (date,)).fetchall()
        conn.close()
        return [_row_to_edition(r) for r in rows]

    def count_articles(self, edition_id: str) -> int:
        conn = self.get_connection()
        (count,) = conn.execute(
            "SELECT COUNT(*) FROM articles WHERE edition_id = ?", (edition_id,)
        ).fetchone()
        conn.close()
        return count

    def delete_edition(self, edition_id: str) -> bool:
        """Operator cleanup; articles go with the edition."""
        conn = self.get_connection()
        cursor = conn.execute("DELETE FROM editions WHERE id = ?", (edition_id,))
        conn.commit()
        conn.close()
        return cursor.rowcount == 1

    @staticmethod
    def _load_articles(conn: sqlite3.Connection, edition_id: str) -> list[Article]:
        rows = conn.execute(
            "SELECT * FROM articles WHERE edition_id = ? ORDER BY score DESC, rowid",
            (edition_id,),
        ).fetchall()
        return [_row_to_article(r) for r in rows]


def _row_to_edition(row: sqlite3.Row) -> Edition:
    return Edition(
        id=row["id"],
        type=EditionType(row["type"]),
        date=row["date"],
        status=EditionStatus(row["status"]),
        published_at=datetime.fromisoformat(row["published_at"]) if row["published_at"] else None,
    )


def _row_to_article(row: sqlite3.Row) -> Article:
    return Article(
        source=row["source"],
        title=row["title"],
        url=row["url"],
        score=row["score"] or 0,
        external_id=row["external_id"] or row["id"],
        thumbnail_url=row["thumbnail_url"],
        excerpt=row["excerpt"],
        metadata=json.loads(row["metadata"]) if row["metadata"] else {},
    )
