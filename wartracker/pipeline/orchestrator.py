"""Pipeline orchestrator: fetch, normalize, upsert, then classify."""

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..classification import ClassificationGateway, ClassificationOutcome
from ..config import ConfigModel, SourceConfig, get_enabled_sources
from ..db import ArticleRepository, ArticleUpsertEngine, RunRepository, WarEventRepository
from ..errors import PersistenceError, ProviderError
from ..ingestion import FeedFetcher, FeedValidators, normalize_entries
from ..models import Article
from ..policy import POLICY_VERSION, is_war_related
from .stats import ClassificationStats, CycleStats, SourceStats

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """Drives one ingestion and classification cycle across all feeds."""

    def __init__(
        self,
        config: ConfigModel,
        sources: List[SourceConfig],
        fetcher: FeedFetcher,
        upsert_engine: ArticleUpsertEngine,
        articles: ArticleRepository,
        events: WarEventRepository,
        gateway: ClassificationGateway,
        runs: Optional[RunRepository] = None,
    ) -> None:
        """
        Initialize pipeline orchestrator.

        Args:
            config: Loaded configuration
            sources: Feed registry; disabled sources are skipped
            fetcher: Feed fetcher
            upsert_engine: Dedup/upsert engine writing to ``articles``
            articles: Article storage, read back for classification
            events: War event storage
            gateway: Classification gateway
            runs: Optional run bookkeeping; cycles are not recorded without it
        """
        self.config = config
        self.sources = sources
        self.fetcher = fetcher
        self.upsert_engine = upsert_engine
        self.articles = articles
        self.events = events
        self.gateway = gateway
        self.runs = runs
        # Conditional-GET state per source name, carried between cycles
        self.validators: Dict[str, FeedValidators] = {}
        # Failed cycles in a row per source, and pauses in force
        self.consecutive_failures: Dict[str, int] = {}
        self.paused_until: Dict[str, datetime] = {}

    async def run_cycle(
        self,
        trigger: str = "scheduled",
        overrides: Optional[Dict[str, Any]] = None,
    ) -> CycleStats:
        """
        Run one full cycle.

        ``overrides`` may carry ``batch_size`` and ``max_concurrent`` for the
        classification phase. Never raises; an unexpected error yields a
        ``failed`` result holding whatever was counted before it.
        """
        overrides = overrides or {}
        stats = CycleStats(trigger=trigger, started_at=datetime.now(timezone.utc))
        started = time.monotonic()
        run_id = await self._start_run(trigger, stats.started_at)

        logger.info(
            "Starting %s cycle over %d sources (keyword policy v%s)",
            trigger,
            len(self.sources),
            POLICY_VERSION,
        )

        try:
            await self.ingest(stats)

            if self.config.classification.enabled:
                stats.classification = await self.classify_pending(
                    batch_size=overrides.get("batch_size"),
                    max_concurrent=overrides.get("max_concurrent"),
                )
            else:
                stats.classification = ClassificationStats(status="disabled")

            stats.status = stats.resolve_status()
        except Exception as e:
            logger.exception("Cycle failed: %s", e)
            stats.error = str(e)
            stats.status = "failed"

        stats.finished_at = datetime.now(timezone.utc)
        stats.duration_seconds = round(time.monotonic() - started, 3)

        await self._finish_run(run_id, stats)

        logger.info(
            "Cycle %s in %.1fs: %d/%d feeds ok, %d inserted, %d updated, %d skipped, %d failed",
            stats.status,
            stats.duration_seconds,
            stats.feeds_succeeded,
            stats.feeds_total,
            stats.inserted,
            stats.updated,
            stats.skipped,
            stats.failed,
        )
        return stats

    async def ingest(self, stats: CycleStats) -> None:
        """Fetch, normalize and upsert every enabled source into ``stats``."""
        sources = get_enabled_sources(self.sources)
        stats.feeds_total = len(sources)

        semaphore = asyncio.Semaphore(self.config.ingestion.feed_concurrency)

        async def guarded(source: SourceConfig) -> SourceStats:
            async with semaphore:
                return await self.ingest_source(source)

        for source_stats in await asyncio.gather(*(guarded(s) for s in sources)):
            stats.add_source(source_stats)

    async def ingest_source(self, source: SourceConfig) -> SourceStats:
        """
        Process one feed. Failures stay inside the returned SourceStats.

        A feed that fails ``max_consecutive_failures`` cycles in a row is
        paused for ``failure_pause_minutes`` and reported as ``paused``
        without being fetched.
        """
        source_stats = SourceStats(name=source.name)
        started = time.monotonic()

        if self._is_paused(source.name):
            source_stats.status = "paused"
            source_stats.error = f"paused until {self.paused_until[source.name].isoformat()}"
            logger.info("%s: %s", source.name, source_stats.error)
            return source_stats

        try:
            result = await self.fetcher.fetch(source, self.validators.get(source.name))
            source_stats.attempts = result.attempts

            if result.validators is not None and not result.validators.is_empty:
                self.validators[source.name] = result.validators

            if not result.success:
                source_stats.status = "failed"
                source_stats.error_kind = result.error.kind if result.error else "unexpected"
                source_stats.error = result.error.message if result.error else None
            elif result.not_modified:
                source_stats.status = "not_modified"
            else:
                articles = normalize_entries(result.entries, source)
                source_stats.fetched = result.entry_count
                source_stats.normalized = len(articles)
                source_stats.rejected = result.entry_count - len(articles)

                batch = await self.upsert_engine.upsert_batch(articles)
                source_stats.add_batch(batch)
                source_stats.status = "partial" if batch.failed else "success"
        except Exception as e:
            logger.error("Unexpected error processing %s: %s", source.name, e)
            source_stats.status = "failed"
            source_stats.error_kind = "unexpected"
            source_stats.error = str(e)

        self._record_feed_outcome(source.name, source_stats.status == "failed")
        source_stats.duration_seconds = round(time.monotonic() - started, 3)
        return source_stats

    async def classify_pending(
        self,
        batch_size: Optional[int] = None,
        max_concurrent: Optional[int] = None,
    ) -> ClassificationStats:
        """
        Classify up to ``batch_size`` unprocessed articles, newest first.

        Articles go through in chunks; within a chunk at most
        ``max_concurrent`` provider calls are in flight. Provider and storage
        failures leave the article unprocessed for the next cycle.
        """
        settings = self.config.classification
        batch_size = batch_size or settings.batch_size
        max_concurrent = max_concurrent or settings.max_concurrent

        stats = ClassificationStats()
        started = time.monotonic()

        try:
            stats.pending = await self.articles.count_unprocessed()
            if stats.pending == 0:
                logger.info("No unprocessed articles, classification idle")
                stats.status = "idle"
                return stats

            batch = await self.articles.get_unprocessed(batch_size)
        except PersistenceError as e:
            logger.error("Could not load unprocessed articles: %s", e)
            stats.status = "failed"
            stats.error = str(e)
            return stats
        finally:
            stats.duration_seconds = round(time.monotonic() - started, 3)

        semaphore = asyncio.Semaphore(max_concurrent)
        chunk_size = settings.chunk_size
        chunks = [batch[i : i + chunk_size] for i in range(0, len(batch), chunk_size)]

        for index, chunk in enumerate(chunks):
            if index > 0 and settings.chunk_delay > 0:
                await asyncio.sleep(settings.chunk_delay)

            outcomes = await asyncio.gather(
                *(self._classify_article(article, semaphore) for article in chunk)
            )
            for outcome in outcomes:
                stats.record(outcome)
            stats.attempted += len(chunk)

        stats.status = "partial" if stats.errors else "success"
        stats.duration_seconds = round(time.monotonic() - started, 3)

        logger.info(
            "Classified %d of %d pending: %d events, %d not events, %d errors",
            stats.attempted,
            stats.pending,
            stats.events_created,
            stats.not_events,
            stats.errors,
        )
        return stats

    async def _classify_article(self, article: Article, semaphore: asyncio.Semaphore) -> str:
        """Classify and persist one article; returns the outcome counter key."""
        if self.config.classification.require_keyword_match and not is_war_related(
            article.title, article.content
        ):
            try:
                await self.articles.mark_processed([article.id])
            except PersistenceError as e:
                logger.error("Could not mark %s processed: %s", article.url, e)
                return "error"
            return "keyword_skipped"

        async with semaphore:
            try:
                result = await self.gateway.analyze(article)
            except ProviderError as e:
                logger.warning("Classification of %s failed: %s", article.url, e)
                return "error"

        try:
            if result.outcome == ClassificationOutcome.EVENT:
                await self.events.insert_event(result.event)
                logger.info(
                    "Event: %s in %s (confidence %.0f) from %s",
                    result.event.event_type.value,
                    result.event.country,
                    result.event.confidence,
                    article.source,
                )
            await self.articles.mark_processed([article.id])
        except PersistenceError as e:
            logger.error("Could not store classification of %s: %s", article.url, e)
            return "error"

        return result.outcome.value

    def _is_paused(self, name: str) -> bool:
        paused_until = self.paused_until.get(name)
        if paused_until is None:
            return False
        if datetime.now(timezone.utc) < paused_until:
            return True
        del self.paused_until[name]
        self.consecutive_failures.pop(name, None)
        logger.info("%s: pause over, fetching again", name)
        return False

    def _record_feed_outcome(self, name: str, failed: bool) -> None:
        if not failed:
            self.consecutive_failures.pop(name, None)
            return

        failures = self.consecutive_failures.get(name, 0) + 1
        self.consecutive_failures[name] = failures
        settings = self.config.ingestion
        if failures >= settings.max_consecutive_failures:
            self.paused_until[name] = datetime.now(timezone.utc) + timedelta(
                minutes=settings.failure_pause_minutes
            )
            logger.warning(
                "%s: paused for %.0f minutes after %d consecutive failures",
                name,
                settings.failure_pause_minutes,
                failures,
            )

    async def _start_run(self, trigger: str, started_at: datetime) -> Optional[int]:
        if self.runs is None:
            return None
        try:
            return await self.runs.create_run(trigger, started_at)
        except PersistenceError as e:
            logger.warning("Could not record run start: %s", e)
            return None

    async def _finish_run(self, run_id: Optional[int], stats: CycleStats) -> None:
        if self.runs is None or run_id is None:
            return
        try:
            await self.runs.update_run_status(
                run_id,
                stats.status,
                stats.model_dump(mode="json"),
                stats.finished_at,
            )
        except PersistenceError as e:
            logger.warning("Could not record run %d result: %s", run_id, e)
