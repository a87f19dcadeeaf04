"""Built-in catalog of feed sources."""

from typing import Iterable, List, Optional

from .models import SourceConfig

DEFAULT_SOURCES = (
    SourceConfig(
        name="BBC World",
        url="https://feeds.bbci.co.uk/news/world/rss.xml",
        category="international",
        reliability=0.95,
    ),
    SourceConfig(
        name="Al Jazeera",
        url="https://www.aljazeera.com/xml/rss/all.xml",
        category="international",
        reliability=0.85,
    ),
    SourceConfig(
        name="The Guardian World",
        url="https://www.theguardian.com/world/rss",
        category="international",
        reliability=0.9,
    ),
    SourceConfig(
        name="NPR World",
        url="https://feeds.npr.org/1004/rss.xml",
        category="international",
        reliability=0.9,
    ),
    SourceConfig(
        name="DW English",
        url="https://rss.dw.com/xml/rss-en-world",
        category="international",
        reliability=0.9,
    ),
    SourceConfig(
        name="France24",
        url="https://www.france24.com/en/rss",
        category="international",
        timeout_ms=8000,
        reliability=0.85,
    ),
    SourceConfig(
        name="Euronews",
        url="https://www.euronews.com/rss?format=mrss",
        category="international",
        timeout_ms=8000,
        reliability=0.8,
    ),
    SourceConfig(
        name="Kyiv Independent",
        url="https://kyivindependent.com/news-archive/rss/",
        category="regional",
        reliability=0.8,
    ),
)


def get_enabled_sources(sources: Iterable[SourceConfig]) -> List[SourceConfig]:
    """Enabled sources, in catalog order."""
    return [s for s in sources if s.enabled]


def find_source(sources: Iterable[SourceConfig], name: str) -> Optional[SourceConfig]:
    """Look up a source by its unique name."""
    for source in sources:
        if source.name == name:
            return source
    return None
