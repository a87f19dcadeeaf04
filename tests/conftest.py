"""Shared fixtures: in-memory repositories, sample sources and articles, feed bodies."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence

import pytest

from wartracker.config import ConfigModel, SourceConfig
from wartracker.db import ArticleRepository, RunRepository, WarEventRepository
from wartracker.errors import PersistenceError
from wartracker.models import Article, WarEvent
from wartracker.utils.hashing import compute_content_hash, generate_article_id

DONETSK_CONTENT = (
    "Russian missiles struck infrastructure in the Donetsk region overnight, "
    "local officials said, reporting twelve casualties in the attack."
)


class InMemoryArticleRepository(ArticleRepository):
    """Article storage keyed by URL, with the same conditional upsert as Postgres."""

    def __init__(self) -> None:
        self.rows: Dict[str, Article] = {}
        self.writes = 0
        self.lookups = 0
        self.fail_lookups = False
        self.fail_upsert: Optional[Callable[[Sequence[Article]], bool]] = None
        self.fail_mark_processed = False
        self.fail_recent = False

    async def get_hashes(self, urls: Sequence[str]) -> Dict[str, str]:
        self.lookups += 1
        if self.fail_lookups:
            raise PersistenceError("lookup failed")
        return {url: self.rows[url].content_hash for url in urls if url in self.rows}

    async def upsert_articles(self, articles: Sequence[Article]) -> None:
        if self.fail_upsert is not None and self.fail_upsert(articles):
            raise PersistenceError("write failed")
        for article in articles:
            existing = self.rows.get(article.url)
            if existing is not None and existing.content_hash == article.content_hash:
                continue
            self.rows[article.url] = article.model_copy(update={"is_processed": False})
            self.writes += 1

    async def get_recent(self, since: datetime, limit: int) -> List[Article]:
        if self.fail_recent:
            raise PersistenceError("recent lookup failed")
        recent = [a for a in self.rows.values() if a.fetched_at >= since]
        recent.sort(key=lambda a: a.fetched_at, reverse=True)
        return recent[:limit]

    async def get_unprocessed(self, limit: int) -> List[Article]:
        pending = [a for a in self.rows.values() if not a.is_processed]
        pending.sort(key=lambda a: a.published_at, reverse=True)
        return [a.model_copy() for a in pending[:limit]]

    async def count_unprocessed(self) -> int:
        return sum(1 for a in self.rows.values() if not a.is_processed)

    async def mark_processed(self, article_ids: Sequence[str]) -> None:
        if self.fail_mark_processed:
            raise PersistenceError("update failed")
        for article in self.rows.values():
            if article.id in article_ids and not article.is_processed:
                article.is_processed = True
                self.writes += 1


class InMemoryWarEventRepository(WarEventRepository):
    def __init__(self) -> None:
        self.events: List[WarEvent] = []
        self.fail = False

    async def insert_event(self, event: WarEvent) -> int:
        if self.fail:
            raise PersistenceError("insert failed")
        event_id = len(self.events) + 1
        self.events.append(event.model_copy(update={"id": event_id}))
        return event_id


class InMemoryRunRepository(RunRepository):
    def __init__(self) -> None:
        self.runs: Dict[int, dict] = {}

    async def create_run(self, trigger: str, started_at: Optional[datetime] = None) -> int:
        run_id = len(self.runs) + 1
        self.runs[run_id] = {"trigger": trigger, "started_at": started_at, "status": "running"}
        return run_id

    async def update_run_status(
        self,
        run_id: int,
        status: str,
        stats_json: Optional[Dict] = None,
        finished_at: Optional[datetime] = None,
    ) -> None:
        self.runs[run_id].update(status=status, stats_json=stats_json, finished_at=finished_at)


@pytest.fixture
def article_repo() -> InMemoryArticleRepository:
    return InMemoryArticleRepository()


@pytest.fixture
def event_repo() -> InMemoryWarEventRepository:
    return InMemoryWarEventRepository()


@pytest.fixture
def run_repo() -> InMemoryRunRepository:
    return InMemoryRunRepository()


@pytest.fixture
def source() -> SourceConfig:
    return SourceConfig(name="Test Feed", url="https://feeds.example.com/world.xml")


@pytest.fixture
def fast_config() -> ConfigModel:
    """Configuration with every delay set to zero."""
    return ConfigModel(
        ingestion={"base_delay": 0, "max_delay": 0, "upsert_chunk_delay": 0},
        classification={"chunk_delay": 0},
        llm={"retry_base_delay": 0},
    )


@pytest.fixture
def make_article() -> Callable[..., Article]:
    """Build an Article the way the normalizer would."""

    def _make(
        url: str = "https://news.example.com/world/1",
        title: str = "Airstrike hits Donetsk region",
        content: str = DONETSK_CONTENT,
        source: str = "Test Feed",
        published_at: Optional[datetime] = None,
        is_processed: bool = False,
        fetched_at: Optional[datetime] = None,
    ) -> Article:
        now = fetched_at or datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        return Article(
            id=generate_article_id(url),
            title=title,
            content=content,
            url=url,
            source=source,
            published_at=published_at or now - timedelta(hours=1),
            fetched_at=now,
            content_hash=compute_content_hash(title, content),
            is_processed=is_processed,
            is_war_related=True,
        )

    return _make


@pytest.fixture
def rss_body() -> Callable[..., bytes]:
    """Render an RSS 2.0 document from (title, link, description) tuples."""

    def _render(items: Sequence[tuple], channel_title: str = "Test Feed") -> bytes:
        rendered = []
        for title, link, description in items:
            rendered.append(
                "<item>"
                f"<title>{title}</title>"
                f"<link>{link}</link>"
                f"<description>{description}</description>"
                "<pubDate>Fri, 01 Mar 2024 10:00:00 GMT</pubDate>"
                "</item>"
            )
        return (
            '<?xml version="1.0" encoding="UTF-8"?>'
            '<rss version="2.0"><channel>'
            f"<title>{channel_title}</title>"
            "<link>https://feeds.example.com/</link>"
            "<description>Test</description>"
            + "".join(rendered)
            + "</channel></rss>"
        ).encode("utf-8")

    return _render
