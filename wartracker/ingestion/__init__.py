"""RSS ingestion and normalization."""

from .models import FeedResult, FeedValidators, FetchError, RawEntry
from .normalizer import clean_text, normalize, normalize_entries, parse_published
from .rss_fetcher import FeedFetcher

__all__ = [
    "FeedFetcher",
    "FeedResult",
    "FeedValidators",
    "FetchError",
    "RawEntry",
    "clean_text",
    "normalize",
    "normalize_entries",
    "parse_published",
]
