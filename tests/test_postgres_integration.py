"""Upsert behaviour against a live PostgreSQL.

Skipped unless WARTRACKER_TEST_DB_PASSWORD is set. The database named by
WARTRACKER_TEST_DB_NAME (default ``wartracker_test``) must already exist.
"""

import asyncio
import os
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from wartracker.db import Database, PostgresArticleRepository, init_database

pytestmark = pytest.mark.skipif(
    not os.environ.get("WARTRACKER_TEST_DB_PASSWORD"),
    reason="WARTRACKER_TEST_DB_PASSWORD not set",
)


def db_config():
    return {
        "host": os.environ.get("WARTRACKER_TEST_DB_HOST", "localhost"),
        "port": int(os.environ.get("WARTRACKER_TEST_DB_PORT", "5432")),
        "database": os.environ.get("WARTRACKER_TEST_DB_NAME", "wartracker_test"),
        "user": os.environ.get("WARTRACKER_TEST_DB_USER", "wartracker"),
        "password_env": "WARTRACKER_TEST_DB_PASSWORD",
        "max_pool_size": 2,
    }


def run_with_repo(action):
    """Run ``action(repo)`` inside a fresh pool; pools are tied to one event loop."""

    async def _run():
        async with Database(db_config()) as db:
            await init_database(db)
            return await action(PostgresArticleRepository(db))

    return asyncio.run(_run())


async def delete_prefix(repo, prefix: str) -> None:
    async with repo.db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute("DELETE FROM articles WHERE url LIKE %s", (prefix + "%",))
        await conn.commit()


async def fetch_row(repo, url: str):
    async with repo.db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                "SELECT is_processed, content, fetched_at FROM articles WHERE url = %s", (url,)
            )
            return await cur.fetchone()


@pytest.fixture
def prefix():
    value = f"https://integration.example.com/{uuid.uuid4().hex}/"
    yield value
    run_with_repo(lambda repo: delete_prefix(repo, value))


class TestConditionalUpsert:
    def test_identical_reupsert_keeps_processed_flag(self, prefix, make_article) -> None:
        article = make_article(url=prefix + "1")
        refetched = make_article(url=prefix + "1", fetched_at=datetime(2024, 3, 2, tzinfo=timezone.utc))

        async def scenario(repo):
            await repo.upsert_articles([article])
            await repo.mark_processed([article.id])
            await repo.upsert_articles([refetched])
            return await fetch_row(repo, article.url)

        row = run_with_repo(scenario)

        assert row["is_processed"] is True
        assert row["fetched_at"] == article.fetched_at

    def test_changed_hash_resets_processed_flag(self, prefix, make_article) -> None:
        original = make_article(url=prefix + "2", content="Shelling reported near the city.")
        changed = make_article(url=prefix + "2", content="Shelling reported near the city!")

        async def scenario(repo):
            await repo.upsert_articles([original])
            await repo.mark_processed([original.id])
            await repo.upsert_articles([changed])
            return await fetch_row(repo, original.url), await repo.get_hashes([original.url])

        row, hashes = run_with_repo(scenario)

        assert row["is_processed"] is False
        assert row["content"] == "Shelling reported near the city!"
        assert hashes == {original.url: changed.content_hash}


class TestGetRecent:
    def test_returns_window_newest_first(self, prefix, make_article) -> None:
        now = datetime.now(timezone.utc)
        old = make_article(url=prefix + "old", fetched_at=now - timedelta(days=10))
        older = make_article(url=prefix + "older", fetched_at=now - timedelta(hours=5))
        newer = make_article(url=prefix + "newer", fetched_at=now - timedelta(hours=1))

        async def scenario(repo):
            await repo.upsert_articles([old, older, newer])
            return await repo.get_recent(now - timedelta(days=1), limit=1000)

        recent = [a.url for a in run_with_repo(scenario) if a.url.startswith(prefix)]

        assert recent == [newer.url, older.url]
