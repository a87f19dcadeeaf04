"""Conflict event classification."""

from .gateway import ClassificationGateway, ClassificationOutcome, ClassificationResult
from .llm_provider import LLMProvider, MockLLMProvider, OpenAIProvider, create_provider
from .prompts import NO_EVENT, build_extraction_prompt
from .validator import ExtractedEvent, ValidationResult, extract_json_object, validate_extraction

__all__ = [
    "ClassificationGateway",
    "ClassificationOutcome",
    "ClassificationResult",
    "ExtractedEvent",
    "LLMProvider",
    "MockLLMProvider",
    "NO_EVENT",
    "OpenAIProvider",
    "ValidationResult",
    "build_extraction_prompt",
    "create_provider",
    "extract_json_object",
    "validate_extraction",
]
