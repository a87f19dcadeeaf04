"""LLM provider interface and implementations."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import openai
from openai import AsyncOpenAI

from ..errors import ConfigurationError, ProviderError
from ..utils.retry import retry_async

logger = logging.getLogger(__name__)

# Timeouts, dropped connections, 5xx and 429 are worth another attempt.
RETRYABLE_ERRORS = (
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.InternalServerError,
    openai.RateLimitError,
)


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        max_tokens: int = 400,
        temperature: float = 0.1,
    ) -> str:
        """
        Send a single-turn prompt and return the reply text.

        Args:
            prompt: User message
            max_tokens: Completion token cap
            temperature: Sampling temperature

        Returns:
            Reply text, stripped; empty string if the model said nothing

        Raises:
            ProviderError: the request failed after retries
        """

    @abstractmethod
    def get_usage_stats(self) -> Dict:
        """Get usage statistics."""


class OpenAIProvider(LLMProvider):
    """OpenAI-compatible chat completions provider (OpenRouter by default)."""

    def __init__(
        self,
        api_key: str,
        model: str = "meta-llama/llama-3.1-8b-instruct",
        base_url: Optional[str] = None,
        timeout: float = 15.0,
        max_retries: int = 2,
        retry_base_delay: float = 1.0,
    ) -> None:
        """
        Initialize OpenAI provider.

        Args:
            api_key: API key for the endpoint
            model: Model name to use
            base_url: Custom base URL (OpenRouter, a local gateway, tests)
            timeout: Per-request timeout in seconds
            max_retries: Retries after the first attempt on transient errors
            retry_base_delay: First back-off delay in seconds
        """
        # Retries are handled here so they share the pipeline's back-off policy
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )
        self.model = model
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.total_tokens = 0
        self.api_calls = 0
        self.failed_calls = 0

    async def complete(
        self,
        prompt: str,
        max_tokens: int = 400,
        temperature: float = 0.1,
    ) -> str:
        async def request() -> Any:
            self.api_calls += 1
            return await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens,
                temperature=temperature,
            )

        try:
            response = await retry_async(
                request,
                max_attempts=self.max_retries + 1,
                base_delay=self.retry_base_delay,
                max_delay=self.retry_base_delay * 8,
                retry_on=RETRYABLE_ERRORS,
                description=f"LLM request ({self.model})",
            )
        except openai.OpenAIError as e:
            self.failed_calls += 1
            raise ProviderError(f"LLM request failed: {e}") from e

        # Update usage stats
        if response.usage:
            self.total_tokens += response.usage.total_tokens

        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    def get_usage_stats(self) -> Dict:
        """Get usage statistics."""
        return {
            "total_tokens": self.total_tokens,
            "api_calls": self.api_calls,
            "failed_calls": self.failed_calls,
            "model": self.model,
        }


MockResponse = Union[str, Exception]


class MockLLMProvider(LLMProvider):
    """Mock LLM provider for testing."""

    def __init__(
        self,
        responses: Optional[Union[Sequence[MockResponse], Callable[[str], MockResponse]]] = None,
        default: MockResponse = "NO_EVENT",
    ) -> None:
        """
        Initialize mock provider.

        Args:
            responses: Replies handed out in order, or a function of the prompt.
                An exception instance is raised instead of returned.
            default: Reply once the sequence is exhausted
        """
        self.calls: List[str] = []
        self.default = default
        if callable(responses):
            self._responder = responses
            self._queue: List[MockResponse] = []
        else:
            self._responder = None
            self._queue = list(responses or [])

    async def complete(
        self,
        prompt: str,
        max_tokens: int = 400,
        temperature: float = 0.1,
    ) -> str:
        """Mock completion."""
        self.calls.append(prompt)

        if self._responder is not None:
            reply = self._responder(prompt)
        elif self._queue:
            reply = self._queue.pop(0)
        else:
            reply = self.default

        if isinstance(reply, Exception):
            raise reply
        return reply

    def get_usage_stats(self) -> Dict:
        """Get mock usage statistics."""
        return {
            "total_tokens": len(self.calls) * 100,
            "api_calls": len(self.calls),
            "failed_calls": 0,
            "model": "mock",
        }


def create_provider(llm_config: Dict[str, Any]) -> LLMProvider:
    """Build the provider named in an LLM config dict (see Config.get_llm_config)."""
    provider = llm_config.get("provider", "openai")

    if provider == "mock":
        return MockLLMProvider()

    if provider == "openai":
        api_key = llm_config.get("api_key")
        if not api_key:
            raise ConfigurationError(
                f"LLM API key not found. Set {llm_config.get('api_key_env') or 'llm.api_key'}."
            )
        return OpenAIProvider(
            api_key=api_key,
            model=llm_config.get("model", "meta-llama/llama-3.1-8b-instruct"),
            base_url=llm_config.get("base_url"),
            timeout=llm_config.get("timeout", 15.0),
            max_retries=llm_config.get("max_retries", 2),
            retry_base_delay=llm_config.get("retry_base_delay", 1.0),
        )

    raise ConfigurationError(f"Unknown LLM provider: {provider}")
