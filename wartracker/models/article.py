"""Canonical article model, keyed by URL."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from .base import DBModel


class Article(DBModel):
    """Article model."""

    id: str = Field(..., description="UUIDv5 of the URL, stable across re-fetches")
    title: str = Field(..., description="Cleaned article title")
    content: str = Field("", description="Cleaned plain-text content")
    url: str = Field(..., description="Article URL (natural key)")
    source: str = Field(..., description="Feed source name")
    published_at: datetime = Field(..., description="Publication timestamp")
    fetched_at: datetime = Field(..., description="When the feed entry was fetched")
    content_hash: str = Field(..., description="SHA-256 of normalized title and content")
    is_processed: bool = Field(False, description="Whether classification has been attempted")
    is_war_related: bool = Field(False, description="Keyword pre-filter result")
    matched_keywords: List[str] = Field(default_factory=list, description="Pre-filter keyword hits")
    image_url: Optional[str] = Field(None, description="Enclosure or media thumbnail")
    author: Optional[str] = Field(None, description="Entry author")
    tags: List[str] = Field(default_factory=list, description="Feed categories, at most 5")
