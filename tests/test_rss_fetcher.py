"""Tests for wartracker.ingestion.rss_fetcher."""

import asyncio

import httpx
import pytest

from wartracker.config import SourceConfig
from wartracker.ingestion import FeedFetcher, FeedValidators

ITEMS = [
    ("Missile strike on Odesa port", "https://news.example.com/1", "Port damaged overnight."),
    ("Talks resume in Geneva", "https://news.example.com/2", "Delegations met on Monday."),
]


def make_fetcher(handler, **kwargs) -> FeedFetcher:
    return FeedFetcher(base_delay=0, max_delay=0, transport=httpx.MockTransport(handler), **kwargs)


class CountingHandler:
    """Replays ``responses`` in order (the last one repeats) and records requests."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.responses)) - 1
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return response


class TestFetch:
    def test_parses_entries(self, source, rss_body) -> None:
        handler = CountingHandler(httpx.Response(200, content=rss_body(ITEMS)))
        result = asyncio.run(make_fetcher(handler).fetch(source))

        assert result.success is True
        assert result.attempts == 1
        assert [e.title for e in result.entries] == [i[0] for i in ITEMS]
        assert result.entries[0].link == "https://news.example.com/1"
        assert result.entries[0].description == "Port damaged overnight."
        assert result.entries[0].published == "Fri, 01 Mar 2024 10:00:00 GMT"

    def test_sends_user_agent_and_accept(self, source, rss_body) -> None:
        handler = CountingHandler(httpx.Response(200, content=rss_body(ITEMS)))
        asyncio.run(make_fetcher(handler, user_agent="TestAgent/1.0").fetch(source))

        request = handler.requests[0]
        assert request.headers["User-Agent"] == "TestAgent/1.0"
        assert "application/rss+xml" in request.headers["Accept"]

    def test_retries_server_error_then_succeeds(self, source, rss_body) -> None:
        handler = CountingHandler(
            httpx.Response(503),
            httpx.Response(200, content=rss_body(ITEMS)),
        )
        result = asyncio.run(make_fetcher(handler).fetch(source))

        assert result.success is True
        assert result.attempts == 2
        assert result.entry_count == 2

    def test_gives_up_after_max_retries(self, source) -> None:
        handler = CountingHandler(httpx.Response(503))
        result = asyncio.run(make_fetcher(handler, max_retries=3).fetch(source))

        assert result.success is False
        assert result.attempts == 4
        assert len(handler.requests) == 4
        assert result.error.kind == "transient"
        assert result.error.status_code == 503

    def test_rate_limit_is_retried(self, source, rss_body) -> None:
        handler = CountingHandler(
            httpx.Response(429),
            httpx.Response(200, content=rss_body(ITEMS)),
        )
        assert asyncio.run(make_fetcher(handler).fetch(source)).attempts == 2

    def test_timeout_is_retried(self, source, rss_body) -> None:
        handler = CountingHandler(
            httpx.ReadTimeout("timed out"),
            httpx.Response(200, content=rss_body(ITEMS)),
        )
        result = asyncio.run(make_fetcher(handler).fetch(source))
        assert result.success is True
        assert result.attempts == 2

    def test_connection_error_exhausts_retries(self, source) -> None:
        handler = CountingHandler(httpx.ConnectError("refused"))
        result = asyncio.run(make_fetcher(handler, max_retries=1).fetch(source))
        assert result.success is False
        assert result.attempts == 2
        assert result.error.kind == "transient"

    def test_client_error_not_retried(self, source) -> None:
        handler = CountingHandler(httpx.Response(404))
        result = asyncio.run(make_fetcher(handler).fetch(source))

        assert result.success is False
        assert result.attempts == 1
        assert result.error.kind == "http"
        assert result.error.status_code == 404

    def test_malformed_feed_not_retried(self, source) -> None:
        handler = CountingHandler(httpx.Response(200, content=b"this is not a feed"))
        result = asyncio.run(make_fetcher(handler).fetch(source))

        assert result.success is False
        assert result.attempts == 1
        assert result.error.kind == "parse"

    def test_truncated_feed_with_entries_is_accepted(self, source, rss_body) -> None:
        body = rss_body(ITEMS)
        truncated = body[: body.index(b"</channel>")]
        handler = CountingHandler(httpx.Response(200, content=truncated))
        result = asyncio.run(make_fetcher(handler).fetch(source))

        assert result.success is True
        assert result.attempts == 1
        assert [e.title for e in result.entries] == [i[0] for i in ITEMS]

    def test_empty_body_is_parse_error(self, source) -> None:
        handler = CountingHandler(httpx.Response(200, content=b"   "))
        result = asyncio.run(make_fetcher(handler).fetch(source))
        assert result.error.kind == "parse"

    def test_caps_entries(self, source, rss_body) -> None:
        items = [(f"Story {n}", f"https://news.example.com/{n}", "Body") for n in range(10)]
        handler = CountingHandler(httpx.Response(200, content=rss_body(items)))
        result = asyncio.run(make_fetcher(handler, max_entries=3).fetch(source))
        assert [e.title for e in result.entries] == ["Story 0", "Story 1", "Story 2"]

    def test_extracts_image_enclosure(self, source) -> None:
        body = (
            b'<?xml version="1.0"?><rss version="2.0"><channel><title>T</title>'
            b"<item><title>Shelling in Kherson</title><link>https://news.example.com/k</link>"
            b'<enclosure url="https://img.example.com/k.jpg" type="image/jpeg" length="100"/>'
            b"</item></channel></rss>"
        )
        handler = CountingHandler(httpx.Response(200, content=body))
        result = asyncio.run(make_fetcher(handler).fetch(source))
        assert result.entries[0].image_url == "https://img.example.com/k.jpg"


class TestConditionalGet:
    def test_returns_new_validators(self, source, rss_body) -> None:
        handler = CountingHandler(
            httpx.Response(
                200,
                content=rss_body(ITEMS),
                headers={"ETag": '"v1"', "Last-Modified": "Fri, 01 Mar 2024 10:00:00 GMT"},
            )
        )
        result = asyncio.run(make_fetcher(handler).fetch(source))
        assert result.validators == FeedValidators(
            etag='"v1"', last_modified="Fri, 01 Mar 2024 10:00:00 GMT"
        )

    def test_sends_validators_and_handles_not_modified(self, source) -> None:
        validators = FeedValidators(etag='"v1"', last_modified="Fri, 01 Mar 2024 10:00:00 GMT")
        handler = CountingHandler(httpx.Response(304))
        result = asyncio.run(make_fetcher(handler).fetch(source, validators))

        request = handler.requests[0]
        assert request.headers["If-None-Match"] == '"v1"'
        assert request.headers["If-Modified-Since"] == "Fri, 01 Mar 2024 10:00:00 GMT"
        assert result.success is True
        assert result.not_modified is True
        assert result.entries == []
        assert result.validators == validators

    def test_no_conditional_headers_without_validators(self, source, rss_body) -> None:
        handler = CountingHandler(httpx.Response(200, content=rss_body(ITEMS)))
        asyncio.run(make_fetcher(handler).fetch(source))
        assert "If-None-Match" not in handler.requests[0].headers
        assert "If-Modified-Since" not in handler.requests[0].headers


class TestFetchAll:
    def test_one_result_per_enabled_source(self, rss_body) -> None:
        sources = [
            SourceConfig(name="Good", url="https://good.example.com/rss"),
            SourceConfig(name="Broken", url="https://broken.example.com/rss"),
            SourceConfig(name="Off", url="https://off.example.com/rss", enabled=False),
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "good.example.com":
                return httpx.Response(200, content=rss_body(ITEMS))
            return httpx.Response(404)

        results = asyncio.run(make_fetcher(handler).fetch_all(sources))

        assert [r.source_name for r in results] == ["Good", "Broken"]
        assert results[0].success is True
        assert results[1].success is False


class TestFallbackUrls:
    @pytest.fixture
    def mirrored(self) -> SourceConfig:
        return SourceConfig(
            name="Mirrored",
            url="https://primary.example.com/rss",
            fallback_urls=["https://mirror1.example.com/rss", "https://mirror2.example.com/rss"],
        )

    def test_primary_success_does_not_touch_mirrors(self, mirrored, rss_body) -> None:
        handler = CountingHandler(httpx.Response(200, content=rss_body(ITEMS)))
        result = asyncio.run(make_fetcher(handler).fetch(mirrored))

        assert [r.url.host for r in handler.requests] == ["primary.example.com"]
        assert result.active_url == "https://primary.example.com/rss"

    def test_falls_back_in_order(self, mirrored, rss_body) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.host)
            if request.url.host == "mirror2.example.com":
                return httpx.Response(200, content=rss_body(ITEMS))
            return httpx.Response(404)

        result = asyncio.run(make_fetcher(handler).fetch(mirrored))

        assert seen == ["primary.example.com", "mirror1.example.com", "mirror2.example.com"]
        assert result.success is True
        assert result.source_url == "https://primary.example.com/rss"
        assert result.active_url == "https://mirror2.example.com/rss"
        assert result.attempts == 3
        assert result.entry_count == 2

    def test_all_urls_failing_reports_last_error(self, mirrored) -> None:
        handler = CountingHandler(httpx.Response(503))
        result = asyncio.run(make_fetcher(handler, max_retries=1).fetch(mirrored))

        assert result.success is False
        assert result.error.kind == "transient"
        assert result.attempts == 6
        assert len(handler.requests) == 6

    def test_validators_only_sent_to_primary(self, mirrored, rss_body) -> None:
        validators = FeedValidators(etag='"v1"')

        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.host == "primary.example.com":
                return httpx.Response(404)
            return httpx.Response(200, content=rss_body(ITEMS), headers={"ETag": '"mirror"'})

        result = asyncio.run(make_fetcher(handler).fetch(mirrored, validators))

        assert seen[0].headers["If-None-Match"] == '"v1"'
        assert "If-None-Match" not in seen[1].headers
        assert result.validators == validators
