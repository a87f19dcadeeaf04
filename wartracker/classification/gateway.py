"""Classification gateway: article in, validated WarEvent (or nothing) out."""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field

from ..errors import InvalidArticleError
from ..models import Article, WarEvent
from ..policy import CONFIDENCE_THRESHOLD
from .llm_provider import LLMProvider
from .prompts import NO_EVENT, build_extraction_prompt
from .validator import parse_json_object, validate_extraction

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 10
MIN_CONTENT_LENGTH = 50


class ClassificationOutcome(str, Enum):
    """How a single classification attempt ended."""

    EVENT = "event"
    NOT_EVENT = "not_event"
    BELOW_THRESHOLD = "below_threshold"
    INVALID_RESPONSE = "invalid_response"
    SCHEMA_REJECTED = "schema_rejected"
    INVALID_INPUT = "invalid_input"


class ClassificationResult(BaseModel):
    """Outcome of classifying one article."""

    outcome: ClassificationOutcome
    event: Optional[WarEvent] = None
    errors: List[str] = Field(default_factory=list)
    confidence: Optional[float] = None


def _is_sentinel(text: str) -> bool:
    cleaned = text.strip().strip("`").strip().strip('"').strip()
    return cleaned.upper() in (NO_EVENT, "NULL", "")


def _is_empty_event(payload: dict) -> bool:
    """An object that carries nothing but ``confidence: 0``."""
    filled = {k: v for k, v in payload.items() if v not in (None, "", [])}
    return set(filled) <= {"confidence"} and filled.get("confidence", 0) == 0


class ClassificationGateway:
    """Mediates calls to the LLM provider and validates what comes back."""

    def __init__(
        self,
        provider: LLMProvider,
        threshold: float = CONFIDENCE_THRESHOLD,
        max_tokens: int = 400,
        temperature: float = 0.1,
    ) -> None:
        self.provider = provider
        self.threshold = threshold
        self.max_tokens = max_tokens
        self.temperature = temperature

    @staticmethod
    def validate_article(article: Article) -> List[str]:
        """Input checks run before any provider call; returns error messages."""
        errors = []
        if len((article.title or "").strip()) < MIN_TITLE_LENGTH:
            errors.append(f"title shorter than {MIN_TITLE_LENGTH} characters")
        if len((article.content or "").strip()) < MIN_CONTENT_LENGTH:
            errors.append(f"content shorter than {MIN_CONTENT_LENGTH} characters")
        parsed = urlparse(article.url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append("url is not an absolute http(s) URL")
        return errors

    async def analyze(self, article: Article) -> ClassificationResult:
        """
        Classify an article and report how it went.

        Raises:
            ProviderError: the provider failed after its retries
        """
        errors = self.validate_article(article)
        if errors:
            logger.debug("Article %s failed input validation: %s", article.url, errors)
            return ClassificationResult(outcome=ClassificationOutcome.INVALID_INPUT, errors=errors)

        reply = await self.provider.complete(
            build_extraction_prompt(article),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        return self.interpret(article, reply)

    async def classify(self, article: Article) -> Optional[WarEvent]:
        """
        Classify an article into a WarEvent, or None when it is not one.

        Raises:
            InvalidArticleError: the article failed input validation
            ProviderError: the provider failed after its retries
        """
        errors = self.validate_article(article)
        if errors:
            raise InvalidArticleError(errors)
        result = await self.analyze(article)
        return result.event

    def interpret(self, article: Article, reply: str) -> ClassificationResult:
        """Turn a raw model reply into a result for ``article``."""
        if _is_sentinel(reply or ""):
            return ClassificationResult(outcome=ClassificationOutcome.NOT_EVENT)

        payload = parse_json_object(reply)
        if payload is None:
            logger.warning("Unparseable model reply for %s: %.200s", article.url, reply)
            return ClassificationResult(
                outcome=ClassificationOutcome.INVALID_RESPONSE,
                errors=["no JSON object in response"],
            )

        if _is_empty_event(payload):
            return ClassificationResult(outcome=ClassificationOutcome.NOT_EVENT, confidence=0)

        validation = validate_extraction(payload)
        if not validation.is_valid:
            logger.info("Rejected extraction for %s: %s", article.url, "; ".join(validation.errors))
            return ClassificationResult(
                outcome=ClassificationOutcome.SCHEMA_REJECTED,
                errors=validation.errors,
            )

        extracted = validation.event
        if extracted.confidence < self.threshold:
            logger.debug(
                "Confidence %.0f below threshold %.0f for %s",
                extracted.confidence,
                self.threshold,
                article.url,
            )
            return ClassificationResult(
                outcome=ClassificationOutcome.BELOW_THRESHOLD,
                confidence=extracted.confidence,
            )

        event = WarEvent(
            **extracted.model_dump(),
            article_id=article.id,
            article_title=article.title,
            article_url=article.url,
            article_source=article.source,
            processed_at=datetime.now(timezone.utc),
        )
        return ClassificationResult(
            outcome=ClassificationOutcome.EVENT,
            event=event,
            confidence=extracted.confidence,
        )
