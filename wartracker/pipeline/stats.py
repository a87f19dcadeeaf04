"""Statistics reported by a pipeline cycle."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..db.upsert import BatchStats

# Classification outcome -> counter on ClassificationStats
OUTCOME_COUNTERS = {
    "event": "events_created",
    "not_event": "not_events",
    "below_threshold": "below_threshold",
    "invalid_response": "invalid_responses",
    "schema_rejected": "schema_rejected",
    "invalid_input": "invalid_input",
    "keyword_skipped": "keyword_skipped",
    "error": "errors",
}

# FetchError.kind -> counter on CycleStats
ERROR_KIND_COUNTERS = {
    "transient": "transient_errors",
    "http": "http_errors",
    "parse": "parse_errors",
}


class SourceStats(BaseModel):
    """What happened to one feed during a cycle."""

    name: str
    status: str = Field(
        "pending", description="success, partial, not_modified, paused or failed"
    )
    attempts: int = 0
    fetched: int = 0
    normalized: int = 0
    rejected: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    duplicates: int = 0
    failed: int = 0
    error_kind: Optional[str] = Field(None, description="transient, http, parse or unexpected")
    error: Optional[str] = None
    duration_seconds: float = 0.0

    def add_batch(self, batch: BatchStats) -> None:
        self.inserted += batch.inserted
        self.updated += batch.updated
        self.skipped += batch.skipped
        self.duplicates += batch.duplicates
        self.failed += batch.failed


class ClassificationStats(BaseModel):
    """Counts for one pass over unprocessed articles."""

    status: str = Field("pending", description="success, partial, idle, disabled or failed")
    pending: int = 0
    attempted: int = 0
    events_created: int = 0
    not_events: int = 0
    below_threshold: int = 0
    invalid_responses: int = 0
    schema_rejected: int = 0
    invalid_input: int = 0
    keyword_skipped: int = 0
    errors: int = 0
    error: Optional[str] = None
    duration_seconds: float = 0.0

    def record(self, outcome: str) -> None:
        """Count one article's outcome."""
        counter = OUTCOME_COUNTERS[outcome]
        setattr(self, counter, getattr(self, counter) + 1)


class CycleStats(BaseModel):
    """Aggregate statistics for one full pipeline cycle."""

    trigger: str = "scheduled"
    status: str = Field("running", description="running, success, partial or failed")
    started_at: datetime
    finished_at: Optional[datetime] = None
    duration_seconds: float = 0.0

    feeds_total: int = 0
    feeds_succeeded: int = 0
    feeds_failed: int = 0
    feeds_not_modified: int = 0
    feeds_paused: int = 0

    fetched: int = 0
    normalized: int = 0
    rejected: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    duplicates: int = 0
    failed: int = 0

    transient_errors: int = 0
    http_errors: int = 0
    parse_errors: int = 0

    classification: Optional[ClassificationStats] = None
    sources: List[SourceStats] = Field(default_factory=list)
    error: Optional[str] = None

    def add_source(self, source: SourceStats) -> None:
        """Fold one feed's statistics into the totals."""
        self.sources.append(source)

        if source.status == "failed":
            self.feeds_failed += 1
            counter = ERROR_KIND_COUNTERS.get(source.error_kind or "")
            if counter:
                setattr(self, counter, getattr(self, counter) + 1)
        elif source.status == "paused":
            self.feeds_paused += 1
        elif source.status == "not_modified":
            self.feeds_not_modified += 1
            self.feeds_succeeded += 1
        else:
            self.feeds_succeeded += 1

        self.fetched += source.fetched
        self.normalized += source.normalized
        self.rejected += source.rejected
        self.inserted += source.inserted
        self.updated += source.updated
        self.skipped += source.skipped
        self.duplicates += source.duplicates
        self.failed += source.failed

    def resolve_status(self) -> str:
        """Final status from the collected counts."""
        if self.error:
            return "failed"
        if self.feeds_failed or self.feeds_paused or self.failed:
            return "partial"
        if self.classification is not None and self.classification.status in ("partial", "failed"):
            return "partial"
        return "success"
