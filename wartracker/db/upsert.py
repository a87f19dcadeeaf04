"""Batch deduplication and upsert of canonical articles."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from ..errors import PersistenceError
from ..models import Article
from ..utils.similarity import article_similarity
from .articles import ArticleRepository

logger = logging.getLogger(__name__)


class BatchStats(BaseModel):
    """Outcome counts of one upsert batch."""

    inserted: int = Field(0, description="New URLs written")
    updated: int = Field(0, description="Known URLs rewritten after a content change")
    skipped: int = Field(0, description="Unchanged or repeated within the batch")
    duplicates: int = Field(0, description="New URLs dropped as near duplicates of another feed's article")
    failed: int = Field(0, description="Articles whose write or lookup failed")


class ArticleUpsertEngine:
    """Classify articles as new, changed or unchanged and persist in chunks."""

    def __init__(
        self,
        repository: ArticleRepository,
        chunk_size: int = 50,
        chunk_delay: float = 0.25,
        similarity_threshold: Optional[float] = None,
        similarity_window: timedelta = timedelta(days=7),
        similarity_candidates: int = 500,
    ) -> None:
        """
        Initialize upsert engine.

        Args:
            repository: Article storage
            chunk_size: Articles per lookup and write round
            chunk_delay: Pause in seconds between chunks
            similarity_threshold: Score at which a new article counts as a near
                duplicate of a recent one from another source; None disables
            similarity_window: How far back recent articles are loaded
            similarity_candidates: Most recent articles compared against
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.repository = repository
        self.chunk_size = chunk_size
        self.chunk_delay = chunk_delay
        self.similarity_threshold = similarity_threshold
        self.similarity_window = similarity_window
        self.similarity_candidates = similarity_candidates

    async def upsert_batch(self, articles: Sequence[Article]) -> BatchStats:
        """
        Persist a batch of articles.

        New URLs are inserted, URLs whose content hash changed are updated and
        reset to unprocessed, identical ones are skipped without a write. New
        URLs that closely match a recent article from another source are
        dropped as duplicates when a similarity threshold is set.
        Failures are counted per sub-batch and never raised.
        """
        stats = BatchStats()

        unique: List[Article] = []
        seen_urls = set()
        for article in articles:
            if article.url in seen_urls:
                stats.skipped += 1
                continue
            seen_urls.add(article.url)
            unique.append(article)

        chunks = [
            unique[i : i + self.chunk_size]
            for i in range(0, len(unique), self.chunk_size)
        ]
        candidates = await self._load_candidates() if unique else []

        for index, chunk in enumerate(chunks):
            if index > 0 and self.chunk_delay > 0:
                await asyncio.sleep(self.chunk_delay)
            await self._process_chunk(chunk, stats, candidates)

        logger.debug(
            "Upserted batch: %d inserted, %d updated, %d skipped, %d duplicates, %d failed",
            stats.inserted,
            stats.updated,
            stats.skipped,
            stats.duplicates,
            stats.failed,
        )
        return stats

    async def _load_candidates(self) -> List[Article]:
        """Recent stored articles for the near-duplicate check."""
        if self.similarity_threshold is None:
            return []
        since = datetime.now(timezone.utc) - self.similarity_window
        try:
            return await self.repository.get_recent(since, self.similarity_candidates)
        except PersistenceError as e:
            logger.warning("Near-duplicate check skipped, recent articles unavailable: %s", e)
            return []

    def find_near_duplicate(self, article: Article, candidates: Sequence[Article]) -> Optional[Article]:
        """Best-matching recent article from another source at or above the threshold."""
        if self.similarity_threshold is None:
            return None
        best: Optional[Article] = None
        best_score = self.similarity_threshold
        for candidate in candidates:
            if candidate.source == article.source or candidate.url == article.url:
                continue
            score = article_similarity(
                article.title, article.content, candidate.title, candidate.content
            )
            if score >= best_score:
                best, best_score = candidate, score
        return best

    async def _process_chunk(
        self,
        chunk: List[Article],
        stats: BatchStats,
        candidates: Sequence[Article],
    ) -> None:
        try:
            existing = await self.repository.get_hashes([a.url for a in chunk])
        except PersistenceError as e:
            logger.error("Hash lookup failed for chunk of %d articles: %s", len(chunk), e)
            stats.failed += len(chunk)
            return

        to_insert = []
        to_update = []
        for article in chunk:
            stored_hash = existing.get(article.url)
            if stored_hash is None:
                duplicate = self.find_near_duplicate(article, candidates)
                if duplicate is not None:
                    logger.info(
                        "Dropping %s from %s, near duplicate of %s from %s",
                        article.url,
                        article.source,
                        duplicate.url,
                        duplicate.source,
                    )
                    stats.duplicates += 1
                    continue
                to_insert.append(article)
            elif stored_hash != article.content_hash:
                to_update.append(article.model_copy(update={"is_processed": False}))
            else:
                stats.skipped += 1

        stats.inserted += await self._write(to_insert, "insert", stats)
        stats.updated += await self._write(to_update, "update", stats)

    async def _write(self, articles: List[Article], label: str, stats: BatchStats) -> int:
        """Write one sub-batch, returning how many were written."""
        if not articles:
            return 0
        try:
            await self.repository.upsert_articles(articles)
        except PersistenceError as e:
            logger.error("Article %s of %d rows failed: %s", label, len(articles), e)
            stats.failed += len(articles)
            return 0
        return len(articles)
