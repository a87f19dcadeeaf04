"""Configuration management for War Tracker."""

from .loader import Config, load_config, load_sources, save_config, save_sources
from .models import (
    ClassificationConfig,
    ConfigModel,
    IngestionConfig,
    LLMConfig,
    SourceConfig,
)
from .registry import DEFAULT_SOURCES, find_source, get_enabled_sources

__all__ = [
    "Config",
    "ConfigModel",
    "ClassificationConfig",
    "IngestionConfig",
    "LLMConfig",
    "SourceConfig",
    "DEFAULT_SOURCES",
    "find_source",
    "get_enabled_sources",
    "load_config",
    "load_sources",
    "save_config",
    "save_sources",
]
