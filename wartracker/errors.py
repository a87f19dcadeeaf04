"""Exception hierarchy for the ingestion pipeline."""

from typing import Optional


class WarTrackerError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(WarTrackerError):
    """Raised when required configuration or credentials are missing."""


class FeedFetchError(WarTrackerError):
    """Raised when a feed cannot be retrieved or parsed."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientFetchError(FeedFetchError):
    """Network error, timeout, 5xx or 429. Worth retrying."""


class PermanentFetchError(FeedFetchError):
    """Client error or malformed feed. Retrying will not help."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        kind: str = "http",
    ) -> None:
        super().__init__(message, status_code)
        self.kind = kind


class ClassificationError(WarTrackerError):
    """Raised when an article cannot be classified."""


class InvalidArticleError(ClassificationError):
    """Article failed input validation before the model call."""

    def __init__(self, errors: list) -> None:
        super().__init__(f"Invalid article: {', '.join(errors)}")
        self.errors = errors


class ProviderError(ClassificationError):
    """The LLM provider failed after retries or returned an unusable reply."""


class PersistenceError(WarTrackerError):
    """Raised when a database read or write fails."""
