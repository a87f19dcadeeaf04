"""Tests for wartracker.classification.gateway and llm_provider."""

import asyncio
import json
from unittest.mock import AsyncMock, Mock

import httpx
import openai
import pytest

from wartracker.classification import (
    ClassificationGateway,
    ClassificationOutcome,
    MockLLMProvider,
    OpenAIProvider,
    build_extraction_prompt,
    create_provider,
)
from wartracker.errors import ConfigurationError, InvalidArticleError, ProviderError
from wartracker.models import EventType, ThreatLevel

DONETSK_REPLY = json.dumps(
    {
        "eventType": "airstrike",
        "country": "Ukraine",
        "region": "Donetsk",
        "confidence": 85,
        "threatLevel": "high",
        "casualties": 12,
        "latitude": 48.0,
        "longitude": 37.8,
    }
)


def event_reply(**overrides) -> str:
    payload = {
        "event_type": "airstrike",
        "country": "Ukraine",
        "confidence": 75,
        "threat_level": "medium",
    }
    payload.update(overrides)
    return json.dumps(payload)


def analyze(gateway, article):
    return asyncio.run(gateway.analyze(article))


class TestValidateArticle:
    def test_valid_article(self, make_article) -> None:
        assert ClassificationGateway.validate_article(make_article()) == []

    def test_short_title_and_content(self, make_article) -> None:
        errors = ClassificationGateway.validate_article(make_article(title="Short", content="Tiny"))
        assert len(errors) == 2

    def test_relative_url(self, make_article) -> None:
        errors = ClassificationGateway.validate_article(make_article(url="/world/1"))
        assert errors == ["url is not an absolute http(s) URL"]


class TestAnalyze:
    def test_donetsk_airstrike(self, make_article) -> None:
        provider = MockLLMProvider([DONETSK_REPLY])
        article = make_article()

        result = analyze(ClassificationGateway(provider), article)

        assert result.outcome == ClassificationOutcome.EVENT
        event = result.event
        assert event.event_type == EventType.AIRSTRIKE
        assert event.country == "Ukraine"
        assert event.region == "Donetsk"
        assert event.confidence == 85
        assert event.threat_level == ThreatLevel.HIGH
        assert event.casualties == 12
        assert event.latitude == 48.0
        assert event.longitude == 37.8
        assert event.article_id == article.id
        assert event.article_title == article.title
        assert event.article_url == article.url
        assert event.article_source == "Test Feed"
        assert event.processed_at.tzinfo is not None

    def test_prompt_carries_article_and_sentinel(self, make_article) -> None:
        provider = MockLLMProvider()
        article = make_article(content="x" * 1500 + " Kramatorsk shelling")
        analyze(ClassificationGateway(provider), article)

        prompt = provider.calls[0]
        assert article.title in prompt
        assert "NO_EVENT" in prompt
        assert "x" * 1000 in prompt
        assert "Kramatorsk" not in prompt

    def test_threshold_boundary(self, make_article) -> None:
        gateway = ClassificationGateway(
            MockLLMProvider([event_reply(confidence=59), event_reply(confidence=60)])
        )
        below = analyze(gateway, make_article())
        at = analyze(gateway, make_article())

        assert below.outcome == ClassificationOutcome.BELOW_THRESHOLD
        assert below.event is None
        assert below.confidence == 59
        assert at.outcome == ClassificationOutcome.EVENT
        assert at.event.confidence == 60

    @pytest.mark.parametrize("reply", ["NO_EVENT", "  no_event\n", "`NO_EVENT`", "", "null"])
    def test_sentinel_replies(self, make_article, reply) -> None:
        gateway = ClassificationGateway(MockLLMProvider([reply]))
        assert analyze(gateway, make_article()).outcome == ClassificationOutcome.NOT_EVENT

    def test_zero_confidence_object_is_not_event(self, make_article) -> None:
        gateway = ClassificationGateway(MockLLMProvider(['{"confidence": 0}']))
        assert analyze(gateway, make_article()).outcome == ClassificationOutcome.NOT_EVENT

    def test_json_wrapped_in_prose_and_fence(self, make_article) -> None:
        reply = "Sure, here is the event:\n```json\n" + event_reply() + "\n```\nLet me know."
        gateway = ClassificationGateway(MockLLMProvider([reply]))
        assert analyze(gateway, make_article()).outcome == ClassificationOutcome.EVENT

    def test_unparseable_reply(self, make_article) -> None:
        gateway = ClassificationGateway(MockLLMProvider(["The article describes a protest."]))
        result = analyze(gateway, make_article())
        assert result.outcome == ClassificationOutcome.INVALID_RESPONSE
        assert result.event is None

    @pytest.mark.parametrize(
        "overrides",
        [{"country": None}, {"confidence": 101}, {"threat_level": "extreme"}],
    )
    def test_schema_rejections(self, make_article, overrides) -> None:
        gateway = ClassificationGateway(MockLLMProvider([event_reply(**overrides)]))
        result = analyze(gateway, make_article())
        assert result.outcome == ClassificationOutcome.SCHEMA_REJECTED
        assert result.event is None
        assert result.errors

    def test_bad_latitude_does_not_reject_event(self, make_article) -> None:
        gateway = ClassificationGateway(MockLLMProvider([event_reply(latitude=95, longitude=37.8)]))
        result = analyze(gateway, make_article())
        assert result.outcome == ClassificationOutcome.EVENT
        assert result.event.latitude is None
        assert result.event.longitude == 37.8

    def test_invalid_input_skips_provider(self, make_article) -> None:
        provider = MockLLMProvider([DONETSK_REPLY])
        result = analyze(ClassificationGateway(provider), make_article(content="too short"))
        assert result.outcome == ClassificationOutcome.INVALID_INPUT
        assert provider.calls == []

    def test_provider_error_propagates(self, make_article) -> None:
        gateway = ClassificationGateway(MockLLMProvider([ProviderError("upstream down")]))
        with pytest.raises(ProviderError):
            analyze(gateway, make_article())


class TestClassify:
    def test_returns_event(self, make_article) -> None:
        gateway = ClassificationGateway(MockLLMProvider([DONETSK_REPLY]))
        event = asyncio.run(gateway.classify(make_article()))
        assert event.country == "Ukraine"

    def test_returns_none_for_no_event(self, make_article) -> None:
        gateway = ClassificationGateway(MockLLMProvider(["NO_EVENT"]))
        assert asyncio.run(gateway.classify(make_article())) is None

    def test_invalid_article_raises(self, make_article) -> None:
        gateway = ClassificationGateway(MockLLMProvider())
        with pytest.raises(InvalidArticleError) as excinfo:
            asyncio.run(gateway.classify(make_article(title="Short")))
        assert excinfo.value.errors == ["title shorter than 10 characters"]


def completion(text: str) -> Mock:
    response = Mock()
    response.choices = [Mock(message=Mock(content=text))]
    response.usage = Mock(total_tokens=42)
    return response


class TestOpenAIProvider:
    def make_provider(self, create: AsyncMock, max_retries: int = 2) -> OpenAIProvider:
        provider = OpenAIProvider(api_key="test-key", max_retries=max_retries, retry_base_delay=0)
        provider.client = Mock()
        provider.client.chat.completions.create = create
        return provider

    def test_returns_reply_and_tracks_usage(self) -> None:
        create = AsyncMock(return_value=completion("  NO_EVENT \n"))
        provider = self.make_provider(create)

        assert asyncio.run(provider.complete("prompt", max_tokens=400, temperature=0.1)) == "NO_EVENT"
        kwargs = create.await_args.kwargs
        assert kwargs["max_tokens"] == 400
        assert kwargs["temperature"] == 0.1
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]
        assert provider.get_usage_stats()["total_tokens"] == 42

    def test_retries_transient_errors(self) -> None:
        request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
        create = AsyncMock(
            side_effect=[openai.APITimeoutError(request=request), completion("NO_EVENT")]
        )
        provider = self.make_provider(create)

        assert asyncio.run(provider.complete("prompt")) == "NO_EVENT"
        assert create.await_count == 2

    def test_raises_provider_error_when_retries_exhausted(self) -> None:
        request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
        create = AsyncMock(side_effect=openai.APIConnectionError(request=request))
        provider = self.make_provider(create, max_retries=2)

        with pytest.raises(ProviderError):
            asyncio.run(provider.complete("prompt"))
        assert create.await_count == 3

    def test_client_errors_not_retried(self) -> None:
        request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
        response = httpx.Response(401, request=request)
        create = AsyncMock(
            side_effect=openai.AuthenticationError("bad key", response=response, body=None)
        )
        provider = self.make_provider(create)

        with pytest.raises(ProviderError):
            asyncio.run(provider.complete("prompt"))
        assert create.await_count == 1


class TestCreateProvider:
    def test_mock(self) -> None:
        assert isinstance(create_provider({"provider": "mock"}), MockLLMProvider)

    def test_openai_requires_key(self) -> None:
        with pytest.raises(ConfigurationError):
            create_provider({"provider": "openai", "api_key": None, "api_key_env": "OPENROUTER_API_KEY"})

    def test_unknown_provider(self) -> None:
        with pytest.raises(ConfigurationError):
            create_provider({"provider": "carrier-pigeon"})


class TestBuildExtractionPrompt:
    def test_lists_vocabularies(self, make_article) -> None:
        prompt = build_extraction_prompt(make_article())
        for value in ("airstrike", "humanitarian", "cyberattack", "diplomatic", "critical"):
            assert value in prompt
