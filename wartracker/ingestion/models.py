"""Data models for ingestion."""

from typing import List, Optional

from pydantic import BaseModel, Field


class RawEntry(BaseModel):
    """One feed item as parsed, before normalization."""

    title: str = Field("", description="Entry title, may contain markup")
    link: str = Field("", description="Entry link")
    guid: Optional[str] = Field(None, description="Entry GUID / Atom id")
    description: str = Field("", description="Summary or description")
    content: str = Field("", description="Full content when the feed provides it")
    published: Optional[str] = Field(None, description="Raw publish date string")
    image_url: Optional[str] = Field(None, description="Enclosure or media thumbnail URL")
    author: Optional[str] = Field(None, description="Entry author")
    categories: List[str] = Field(default_factory=list, description="Entry tags, at most 5")


class FeedValidators(BaseModel):
    """Conditional-GET state for one feed, passed in and out of each fetch."""

    etag: Optional[str] = Field(None, description="ETag from the last response")
    last_modified: Optional[str] = Field(None, description="Last-Modified from the last response")

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to send."""
        return not (self.etag or self.last_modified)


class FetchError(BaseModel):
    """Why a feed could not be fetched."""

    kind: str = Field(..., description="transient, http or parse")
    message: str = Field(..., description="Human-readable error")
    status_code: Optional[int] = Field(None, description="HTTP status if any")


class FeedResult(BaseModel):
    """Result of fetching an RSS feed."""

    source_name: str = Field(..., description="Source name")
    source_url: str = Field(..., description="RSS feed URL")
    active_url: Optional[str] = Field(None, description="URL actually fetched, primary or fallback")
    success: bool = Field(..., description="Whether fetch was successful")
    entries: List[RawEntry] = Field(default_factory=list, description="Parsed feed entries")
    error: Optional[FetchError] = Field(None, description="Error if failed")
    not_modified: bool = Field(False, description="Server answered 304 Not Modified")
    validators: Optional[FeedValidators] = Field(None, description="Validators for the next fetch")
    attempts: int = Field(0, description="HTTP attempts made")

    @property
    def entry_count(self) -> int:
        """Number of entries fetched."""
        return len(self.entries)
