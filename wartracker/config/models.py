"""Configuration models."""

from typing import List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..policy import CONFIDENCE_THRESHOLD


class PostgresConfig(BaseModel):
    """Postgres configuration."""

    host: str = Field("localhost", description="Database host")
    port: int = Field(5432, description="Database port")
    database: str = Field("wartracker", description="Database name")
    user: str = Field("wartracker", description="Database user")
    password: Optional[str] = Field(None, description="Database password")
    password_env: Optional[str] = Field(
        "WARTRACKER_DB_PASSWORD", description="Environment variable for password"
    )
    min_pool_size: int = Field(1, ge=1, description="Minimum pooled connections")
    max_pool_size: int = Field(10, ge=1, description="Maximum pooled connections")


class LLMConfig(BaseModel):
    """Classification provider configuration (any OpenAI-compatible endpoint)."""

    provider: str = Field("openai", description="LLM provider (openai, mock)")
    model: str = Field("meta-llama/llama-3.1-8b-instruct", description="Model name")
    api_key_env: Optional[str] = Field(
        "OPENROUTER_API_KEY", description="Environment variable for API key"
    )
    api_key: Optional[str] = Field(None, description="API key (prefer api_key_env)")
    base_url: Optional[str] = Field(
        "https://openrouter.ai/api/v1", description="Base URL for the chat completions API"
    )
    timeout: float = Field(15.0, gt=0, description="Request timeout in seconds")
    max_tokens: int = Field(400, ge=16, le=4000)
    temperature: float = Field(0.1, ge=0.0, le=2.0)
    max_retries: int = Field(2, ge=0, le=10, description="Retries on transient provider errors")
    retry_base_delay: float = Field(1.0, ge=0.0)


class IngestionConfig(BaseModel):
    """Feed fetching and upsert parameters."""

    feed_concurrency: int = Field(1, ge=1, le=20, description="Feeds fetched at once (1 = sequential)")
    max_retries: int = Field(3, ge=0, le=10, description="Retries on transient fetch errors")
    base_delay: float = Field(1.0, ge=0.0, description="First back-off delay in seconds")
    max_delay: float = Field(30.0, ge=0.0, description="Back-off cap in seconds")
    max_entries_per_feed: int = Field(50, ge=1, le=500)
    upsert_chunk_size: int = Field(50, ge=1, le=1000)
    upsert_chunk_delay: float = Field(0.25, ge=0.0, description="Pause between upsert chunks")
    user_agent: str = Field("WarTracker RSS Fetcher/2.0", description="HTTP User-Agent")
    max_consecutive_failures: int = Field(
        5, ge=1, le=100, description="Failed cycles in a row before a feed is paused"
    )
    failure_pause_minutes: float = Field(60.0, ge=0.0, description="How long a failing feed is paused")
    similarity_threshold: Optional[float] = Field(
        0.85,
        ge=0.5,
        le=1.0,
        description="Near-duplicate score that drops a new article; null disables the check",
    )
    similarity_window_hours: int = Field(168, ge=1, description="How far back to look for near duplicates")
    similarity_candidates: int = Field(500, ge=1, le=5000, description="Recent articles compared against")


class ClassificationConfig(BaseModel):
    """Classification phase parameters."""

    enabled: bool = Field(True, description="Run classification after ingestion")
    batch_size: int = Field(10, ge=1, le=1000, description="Unprocessed articles per cycle")
    max_concurrent: int = Field(3, ge=1, le=50, description="Simultaneous provider calls")
    chunk_size: int = Field(10, ge=1, le=1000, description="Articles awaited together")
    chunk_delay: float = Field(1.0, ge=0.0, description="Pause between chunks in seconds")
    # Never below the policy minimum
    confidence_threshold: int = Field(CONFIDENCE_THRESHOLD, ge=CONFIDENCE_THRESHOLD, le=100)
    require_keyword_match: bool = Field(
        True, description="Skip the model call for articles failing the keyword pre-filter"
    )


class SchedulerConfig(BaseModel):
    """Interval trigger configuration."""

    interval_minutes: int = Field(15, ge=1, le=1440)
    run_on_start: bool = Field(True, description="Run one cycle immediately when started")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field("INFO", description="Log level")
    file: Optional[str] = Field(None, description="Optional log file path")


class ConfigModel(BaseModel):
    """Main configuration model."""

    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    classification: ClassificationConfig = Field(default_factory=ClassificationConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _check_feed_url(url: str) -> str:
    parsed = urlparse(url.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Feed URL must be absolute http(s): {url}")
    return url.strip()


class SourceConfig(BaseModel):
    """Feed source from sources.yaml. Immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Unique display name")
    url: str = Field(..., description="RSS/Atom feed URL")
    fallback_urls: List[str] = Field(
        default_factory=list, description="Mirrors tried in order when the primary URL fails"
    )
    category: str = Field("international", description="Source category")
    timeout_ms: int = Field(10000, ge=500, le=120000, description="Fetch timeout in milliseconds")
    reliability: float = Field(1.0, ge=0.0, le=1.0, description="Source reliability score")
    enabled: bool = Field(True, description="Whether source is enabled")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an absolute http(s) URL."""
        return _check_feed_url(v)

    @field_validator("fallback_urls")
    @classmethod
    def validate_fallback_urls(cls, v: List[str]) -> List[str]:
        return [_check_feed_url(url) for url in v]

    @property
    def timeout(self) -> float:
        """Timeout in seconds."""
        return self.timeout_ms / 1000.0
