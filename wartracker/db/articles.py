"""Article storage keyed by URL."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Sequence

import psycopg

from ..errors import PersistenceError
from ..models import Article
from .connection import Database

ARTICLE_COLUMNS = (
    "id",
    "title",
    "content",
    "url",
    "source",
    "published_at",
    "fetched_at",
    "content_hash",
    "is_processed",
    "is_war_related",
    "matched_keywords",
    "image_url",
    "author",
    "tags",
)

# A row is rewritten only when its content hash changed. Rewritten rows go
# back to unprocessed so the new content gets classified.
UPSERT_SQL = f"""
    INSERT INTO articles ({", ".join(ARTICLE_COLUMNS)})
    VALUES ({", ".join(["%s"] * len(ARTICLE_COLUMNS))})
    ON CONFLICT (url) DO UPDATE SET
        title = EXCLUDED.title,
        content = EXCLUDED.content,
        source = EXCLUDED.source,
        published_at = EXCLUDED.published_at,
        fetched_at = EXCLUDED.fetched_at,
        content_hash = EXCLUDED.content_hash,
        is_processed = FALSE,
        is_war_related = EXCLUDED.is_war_related,
        matched_keywords = EXCLUDED.matched_keywords,
        image_url = EXCLUDED.image_url,
        author = EXCLUDED.author,
        tags = EXCLUDED.tags
    WHERE articles.content_hash IS DISTINCT FROM EXCLUDED.content_hash
"""


class ArticleRepository(ABC):
    """Read/write contract the pipeline needs from article storage."""

    @abstractmethod
    async def get_hashes(self, urls: Sequence[str]) -> Dict[str, str]:
        """Map each already stored URL to its content hash."""

    @abstractmethod
    async def upsert_articles(self, articles: Sequence[Article]) -> None:
        """Insert new URLs and rewrite rows whose content hash changed."""

    @abstractmethod
    async def get_recent(self, since: datetime, limit: int) -> List[Article]:
        """Articles fetched at or after ``since``, most recent first."""

    @abstractmethod
    async def get_unprocessed(self, limit: int) -> List[Article]:
        """Unprocessed articles, newest first."""

    @abstractmethod
    async def count_unprocessed(self) -> int:
        """Number of articles waiting for classification."""

    @abstractmethod
    async def mark_processed(self, article_ids: Sequence[str]) -> None:
        """Flag articles as classified."""


class PostgresArticleRepository(ArticleRepository):
    """Article repository backed by the articles table."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def get_hashes(self, urls: Sequence[str]) -> Dict[str, str]:
        if not urls:
            return {}
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        "SELECT url, content_hash FROM articles WHERE url = ANY(%s)",
                        (list(urls),),
                    )
                    rows = await cur.fetchall()
        except psycopg.Error as e:
            raise PersistenceError(f"Failed to look up article hashes: {e}") from e
        return {row["url"]: row["content_hash"] for row in rows}

    async def upsert_articles(self, articles: Sequence[Article]) -> None:
        if not articles:
            return
        params = [
            tuple(getattr(article, column) for column in ARTICLE_COLUMNS)
            for article in articles
        ]
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.executemany(UPSERT_SQL, params)
                await conn.commit()
        except psycopg.Error as e:
            raise PersistenceError(f"Failed to upsert {len(articles)} articles: {e}") from e

    async def get_recent(self, since: datetime, limit: int) -> List[Article]:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        SELECT * FROM articles
                        WHERE fetched_at >= %s
                        ORDER BY fetched_at DESC
                        LIMIT %s
                        """,
                        (since, limit),
                    )
                    rows = await cur.fetchall()
        except psycopg.Error as e:
            raise PersistenceError(f"Failed to load recent articles: {e}") from e
        return [Article(**row) for row in rows]

    async def get_unprocessed(self, limit: int) -> List[Article]:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        SELECT * FROM articles
                        WHERE is_processed = FALSE
                        ORDER BY published_at DESC
                        LIMIT %s
                        """,
                        (limit,),
                    )
                    rows = await cur.fetchall()
        except psycopg.Error as e:
            raise PersistenceError(f"Failed to load unprocessed articles: {e}") from e
        return [Article(**row) for row in rows]

    async def count_unprocessed(self) -> int:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        "SELECT COUNT(*) AS pending FROM articles WHERE is_processed = FALSE"
                    )
                    row = await cur.fetchone()
        except psycopg.Error as e:
            raise PersistenceError(f"Failed to count unprocessed articles: {e}") from e
        return row["pending"] if row else 0

    async def mark_processed(self, article_ids: Sequence[str]) -> None:
        if not article_ids:
            return
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        "UPDATE articles SET is_processed = TRUE WHERE id = ANY(%s)",
                        (list(article_ids),),
                    )
                await conn.commit()
        except psycopg.Error as e:
            raise PersistenceError(f"Failed to mark articles processed: {e}") from e
