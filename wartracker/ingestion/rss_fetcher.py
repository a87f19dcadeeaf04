"""RSS/Atom feed fetcher with retries and conditional GET."""

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

import feedparser
import httpx

from ..config import SourceConfig
from ..errors import PermanentFetchError, TransientFetchError
from ..utils.retry import retry_async
from .models import FeedResult, FeedValidators, FetchError, RawEntry

logger = logging.getLogger(__name__)

FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml;q=0.9, */*;q=0.8"
MAX_CATEGORIES = 5


class FeedFetcher:
    """Fetch and parse RSS feeds."""

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        max_entries: int = 50,
        max_concurrent: int = 5,
        user_agent: str = "WarTracker RSS Fetcher/2.0",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize feed fetcher.

        Args:
            max_retries: Retries after the first attempt for transient errors
            base_delay: First back-off delay in seconds, doubled per retry
            max_delay: Back-off cap in seconds
            max_entries: Entries kept per feed, in feed order
            max_concurrent: Feeds fetched at once by fetch_all
            user_agent: User-Agent header
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_entries = max_entries
        self.max_concurrent = max_concurrent
        self.user_agent = user_agent
        self.transport = transport

    def _client(self, source: SourceConfig) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=source.timeout,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent, "Accept": FEED_ACCEPT},
            transport=self.transport,
        )

    async def _get(
        self,
        client: httpx.AsyncClient,
        source: SourceConfig,
        url: str,
        validators: Optional[FeedValidators],
    ) -> httpx.Response:
        """Single attempt. Raises TransientFetchError or PermanentFetchError."""
        headers = {}
        if validators is not None:
            if validators.etag:
                headers["If-None-Match"] = validators.etag
            if validators.last_modified:
                headers["If-Modified-Since"] = validators.last_modified

        try:
            response = await client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            raise TransientFetchError(f"Request timed out after {source.timeout_ms}ms") from e
        except httpx.TransportError as e:
            raise TransientFetchError(f"Network error: {e}") from e
        except httpx.RequestError as e:
            raise PermanentFetchError(f"Request failed: {e}", kind="http") from e

        status = response.status_code
        if status == 304:
            return response
        if status == 429 or status >= 500:
            raise TransientFetchError(f"HTTP {status}", status_code=status)
        if status >= 400:
            raise PermanentFetchError(f"HTTP {status}", status_code=status, kind="http")
        return response

    def parse_feed(self, body: bytes, headers: Optional[Mapping[str, str]] = None) -> List[RawEntry]:
        """
        Parse feed bytes into raw entries.

        feedparser detects the encoding itself; a feed it flags as malformed is
        still accepted when entries came out of it.

        Raises:
            PermanentFetchError: empty body or unreadable feed
        """
        if not body or not body.strip():
            raise PermanentFetchError("Received empty response from feed", kind="parse")

        response_headers = {}
        if headers is not None and headers.get("content-type"):
            response_headers["content-type"] = headers["content-type"]

        feed = feedparser.parse(body, response_headers=response_headers)

        if feed.bozo:
            if not feed.entries and not feed.get("version"):
                raise PermanentFetchError(
                    f"Invalid feed format: {feed.get('bozo_exception')}", kind="parse"
                )
            logger.warning("Feed parsed with recoverable problems: %s", feed.get("bozo_exception"))

        return [self._to_raw_entry(entry) for entry in feed.entries[: self.max_entries]]

    def _to_raw_entry(self, entry: Any) -> RawEntry:
        content = ""
        if entry.get("content"):
            content = " ".join(part.get("value", "") for part in entry["content"])

        categories = [tag.get("term") for tag in entry.get("tags", []) if tag.get("term")]

        return RawEntry(
            title=entry.get("title") or "",
            link=entry.get("link") or "",
            guid=entry.get("id"),
            description=entry.get("summary") or entry.get("description") or "",
            content=content,
            published=entry.get("published") or entry.get("updated") or entry.get("created"),
            image_url=self._extract_image(entry),
            author=entry.get("author"),
            categories=categories[:MAX_CATEGORIES],
        )

    @staticmethod
    def _extract_image(entry: Any) -> Optional[str]:
        for enclosure in entry.get("enclosures", []):
            if enclosure.get("type", "").startswith("image/") and enclosure.get("href"):
                return enclosure["href"]
        for key in ("media_thumbnail", "media_content"):
            for media in entry.get(key, []) or []:
                if media.get("url"):
                    return media["url"]
        return None

    async def fetch(
        self,
        source: SourceConfig,
        validators: Optional[FeedValidators] = None,
    ) -> FeedResult:
        """
        Fetch and parse a single feed.

        Transient errors are retried with exponential back-off; client errors
        and malformed feeds are not. When the primary URL still fails, each
        of the source's fallback URLs is tried in order. The outcome is always
        returned, never raised.
        """
        result = await self._fetch_url(source, source.url, validators)
        attempts = result.attempts

        for fallback_url in source.fallback_urls:
            if result.success:
                break
            logger.warning(
                "%s: %s failed (%s), trying fallback %s",
                source.name,
                result.active_url,
                result.error.message if result.error else "unknown error",
                fallback_url,
            )
            # Validators belong to the primary URL and are not sent to mirrors
            result = await self._fetch_url(source, fallback_url, None)
            attempts += result.attempts
            result.validators = validators

        result.attempts = attempts
        return result

    async def _fetch_url(
        self,
        source: SourceConfig,
        url: str,
        validators: Optional[FeedValidators],
    ) -> FeedResult:
        attempts = 0

        async def attempt() -> httpx.Response:
            nonlocal attempts
            attempts += 1
            return await self._get(client, source, url, validators)

        try:
            async with self._client(source) as client:
                response = await retry_async(
                    attempt,
                    max_attempts=self.max_retries + 1,
                    base_delay=self.base_delay,
                    max_delay=self.max_delay,
                    retry_on=(TransientFetchError,),
                    description=f"Fetch {source.name}",
                )

            if response.status_code == 304:
                logger.info("%s: not modified", source.name)
                return FeedResult(
                    source_name=source.name,
                    source_url=source.url,
                    active_url=url,
                    success=True,
                    not_modified=True,
                    validators=validators,
                    attempts=attempts,
                )

            entries = self.parse_feed(response.content, response.headers)
            new_validators = FeedValidators(
                etag=response.headers.get("etag"),
                last_modified=response.headers.get("last-modified"),
            )
            logger.info("%s: %d entries", source.name, len(entries))
            return FeedResult(
                source_name=source.name,
                source_url=source.url,
                active_url=url,
                success=True,
                entries=entries,
                validators=new_validators,
                attempts=attempts,
            )

        except TransientFetchError as e:
            return self._failure(source, url, "transient", e, attempts, validators)
        except PermanentFetchError as e:
            logger.warning("%s: %s", source.name, e)
            return self._failure(source, url, e.kind, e, attempts, validators)

    @staticmethod
    def _failure(
        source: SourceConfig,
        url: str,
        kind: str,
        error: Exception,
        attempts: int,
        validators: Optional[FeedValidators],
    ) -> FeedResult:
        return FeedResult(
            source_name=source.name,
            source_url=source.url,
            active_url=url,
            success=False,
            error=FetchError(
                kind=kind,
                message=str(error),
                status_code=getattr(error, "status_code", None),
            ),
            validators=validators,
            attempts=attempts,
        )

    async def fetch_all(
        self,
        sources: List[SourceConfig],
        validators: Optional[Dict[str, FeedValidators]] = None,
    ) -> List[FeedResult]:
        """Fetch all enabled feeds concurrently, one result per source."""
        enabled_sources = [s for s in sources if s.enabled]

        if not enabled_sources:
            return []

        validators = validators or {}
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def fetch_with_semaphore(source: SourceConfig) -> FeedResult:
            async with semaphore:
                return await self.fetch(source, validators.get(source.name))

        tasks = [fetch_with_semaphore(source) for source in enabled_sources]
        return await asyncio.gather(*tasks)
