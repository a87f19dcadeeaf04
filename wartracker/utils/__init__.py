"""Shared utilities."""

from .logging_config import setup_logging
from .retry import backoff_delay, retry_async

__all__ = ["backoff_delay", "retry_async", "setup_logging"]
