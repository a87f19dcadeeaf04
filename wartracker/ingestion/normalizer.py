"""Turn raw feed entries into canonical articles."""

import html
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Iterable, List, Optional
from urllib.parse import urljoin, urlparse

import pendulum

from ..config import SourceConfig
from ..models import Article
from ..policy import match_keywords
from ..utils.hashing import compute_content_hash, generate_article_id
from .models import RawEntry

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 500
MAX_CONTENT_LENGTH = 1000
MAX_TAG_LENGTH = 100

# Link shorteners and known bad hosts; subdomains match too
BLOCKED_DOMAINS = (
    "bit.ly",
    "tinyurl.com",
    "goo.gl",
    "t.co",
    "ow.ly",
    "spam.com",
    "malware.com",
    "phishing.com",
)
SUSPICIOUS_EXTENSIONS = (".exe", ".zip", ".rar", ".dmg", ".pkg", ".apk", ".bat", ".cmd", ".scr", ".vbs")

_TAGS = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")


def clean_text(text: Optional[str], max_length: Optional[int] = None) -> str:
    """Strip HTML tags and entities, collapse whitespace, optionally truncate."""
    if not text:
        return ""
    text = _TAGS.sub(" ", text)
    text = html.unescape(text)
    # Entities can decode to markup, e.g. &lt;b&gt;
    text = _TAGS.sub(" ", text)
    text = _WHITESPACE.sub(" ", text).strip()
    if max_length is not None and len(text) > max_length:
        text = text[:max_length].rstrip()
    return text


def parse_published(value: Optional[str], fallback: datetime) -> datetime:
    """
    Parse a feed date string into an aware UTC datetime.

    RSS uses RFC 822 dates, Atom uses ISO 8601; anything else goes through
    pendulum's lenient parser. Unparseable or missing dates yield ``fallback``.
    """
    if not value or not value.strip():
        return fallback

    value = value.strip()
    parsed: Optional[datetime] = None

    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        parsed = None

    if parsed is None:
        try:
            result = pendulum.parse(value, strict=False)
            if isinstance(result, datetime):
                parsed = result
        except (ValueError, OverflowError, TypeError) as e:
            logger.debug("Unparseable date %r: %s", value, e)
            return fallback

    if parsed is None:
        return fallback
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _is_http_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def resolve_url(entry: RawEntry, source: SourceConfig) -> Optional[str]:
    """
    Entry link, resolved against the feed URL when relative.

    Without a link the GUID is used, but only when it is already an absolute
    http(s) URL; opaque GUIDs never become URLs.
    """
    if entry.link and entry.link.strip():
        url = urljoin(source.url, entry.link.strip())
        if _is_http_url(url):
            return url
    if entry.guid and entry.guid.strip():
        guid = entry.guid.strip()
        if _is_http_url(guid):
            return guid
    return None


def unsafe_url_reason(url: str) -> Optional[str]:
    """Why an article URL must not be stored, or None when it is acceptable."""
    parsed = urlparse(url)
    hostname = (parsed.hostname or "").lower()
    for domain in BLOCKED_DOMAINS:
        if hostname == domain or hostname.endswith("." + domain):
            return f"blocked domain {domain}"
    if parsed.path.lower().endswith(SUSPICIOUS_EXTENSIONS):
        return "download link"
    return None


def normalize(
    entry: RawEntry,
    source: SourceConfig,
    fetched_at: Optional[datetime] = None,
) -> Optional[Article]:
    """
    Build a canonical Article from a raw entry.

    Returns None for entries without a title or a usable URL, or whose URL
    points at a blocked host or a download; never raises
    for bad entry data.
    """
    if fetched_at is None:
        fetched_at = datetime.now(timezone.utc)

    title = clean_text(entry.title, MAX_TITLE_LENGTH)
    url = resolve_url(entry, source)
    if not title or not url:
        logger.debug("Skipping entry from %s without title or URL", source.name)
        return None

    reason = unsafe_url_reason(url)
    if reason:
        logger.info("Skipping %s from %s: %s", url, source.name, reason)
        return None

    description = clean_text(entry.description)
    body = clean_text(entry.content)
    content = body if len(body) > len(description) else description
    content = content[:MAX_CONTENT_LENGTH].rstrip()

    keywords = match_keywords(title, content)
    tags = []
    for category in entry.categories:
        tag = clean_text(category, MAX_TAG_LENGTH)
        if tag and tag not in tags:
            tags.append(tag)

    return Article(
        id=generate_article_id(url),
        title=title,
        content=content,
        url=url,
        source=source.name,
        published_at=parse_published(entry.published, fetched_at),
        fetched_at=fetched_at,
        content_hash=compute_content_hash(title, content),
        is_processed=False,
        is_war_related=bool(keywords),
        matched_keywords=keywords,
        image_url=entry.image_url or None,
        author=entry.author or None,
        tags=tags,
    )


def normalize_entries(
    entries: Iterable[RawEntry],
    source: SourceConfig,
    fetched_at: Optional[datetime] = None,
) -> List[Article]:
    """Normalize a feed's entries in feed order, dropping rejects and repeated URLs."""
    if fetched_at is None:
        fetched_at = datetime.now(timezone.utc)

    articles = []
    seen_urls = set()
    for entry in entries:
        article = normalize(entry, source, fetched_at)
        if article is None or article.url in seen_urls:
            continue
        seen_urls.add(article.url)
        articles.append(article)
    return articles
