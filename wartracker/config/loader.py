"""Configuration loader."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from ..errors import ConfigurationError
from .models import ConfigModel, SourceConfig
from .registry import DEFAULT_SOURCES

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "WARTRACKER_CONFIG"


def default_config_path() -> Path:
    """Config path from the environment, else ~/.config/wartracker/config.yaml."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / ".config" / "wartracker" / "config.yaml"


class Config:
    """Configuration manager."""

    def __init__(self, config_path: Optional[Path] = None) -> None:
        """Initialize config manager."""
        if config_path is None:
            config_path = default_config_path()
        self.config_path = config_path
        self._config: Optional[ConfigModel] = None

    @classmethod
    def from_model(cls, model: ConfigModel, config_path: Optional[Path] = None) -> "Config":
        """Wrap an already-built model (used by tests and embedding code)."""
        config = cls(config_path or Path("config.yaml"))
        config._config = model
        return config

    @property
    def config(self) -> ConfigModel:
        """Get loaded config."""
        if self._config is None:
            self._config = load_config(self.config_path)
        return self._config

    @property
    def sources_path(self) -> Path:
        """sources.yaml lives next to config.yaml."""
        return self.config_path.parent / "sources.yaml"

    def get_sources(self) -> List[SourceConfig]:
        """Load sources.yaml, falling back to the built-in registry."""
        if not self.sources_path.exists():
            logger.info("No sources file at %s, using built-in registry", self.sources_path)
            return list(DEFAULT_SOURCES)
        return load_sources(self.sources_path)

    def get_db_config(self) -> Dict[str, Any]:
        """Get database configuration dict."""
        db_config = self.config.postgres.model_dump()

        # Handle password from environment if specified
        if db_config.get("password_env"):
            password = os.environ.get(db_config["password_env"])
            if password:
                db_config["password"] = password

        return db_config

    def get_llm_config(self) -> Dict[str, Any]:
        """Get LLM configuration dict."""
        llm_config = self.config.llm.model_dump()

        # Handle API key from environment if specified
        if llm_config.get("api_key_env"):
            api_key = os.environ.get(llm_config["api_key_env"])
            if api_key:
                llm_config["api_key"] = api_key

        return llm_config

    def require_credentials(self, need_llm: bool = True) -> None:
        """
        Refuse to start without the credentials of external dependencies.

        Raises:
            ConfigurationError: naming every missing credential
        """
        missing = []

        db_config = self.get_db_config()
        if not db_config.get("password"):
            missing.append(
                f"database password (set {db_config.get('password_env') or 'postgres.password'})"
            )

        if need_llm:
            llm_config = self.get_llm_config()
            if llm_config.get("provider") != "mock" and not llm_config.get("api_key"):
                missing.append(
                    f"LLM API key (set {llm_config.get('api_key_env') or 'llm.api_key'})"
                )

        if missing:
            raise ConfigurationError("Missing required credentials: " + "; ".join(missing))


def load_config(config_path: Path) -> ConfigModel:
    """Load configuration from YAML file."""
    if not config_path.exists():
        raise ConfigurationError(
            f"Config file not found: {config_path}. Run 'wartracker init' first."
        )

    try:
        with open(config_path) as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            config_data = {}

        return ConfigModel(**config_data)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file: {e}") from e
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_sources(sources_path: Path) -> List[SourceConfig]:
    """Load sources from YAML file, skipping invalid and duplicate entries."""
    if not sources_path.exists():
        raise ConfigurationError(f"Sources file not found: {sources_path}")

    try:
        with open(sources_path) as f:
            sources_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in sources file: {e}") from e

    if not isinstance(sources_data, dict) or "sources" not in sources_data:
        return []

    sources = []
    seen = set()
    for source_data in sources_data["sources"] or []:
        if not isinstance(source_data, dict):
            logger.warning("Skipping source entry that is not a mapping: %r", source_data)
            continue
        try:
            source = SourceConfig(**source_data)
        except ValidationError as e:
            logger.warning("Skipping invalid source %s: %s", source_data.get("name", "unknown"), e)
            continue
        if source.name in seen:
            logger.warning("Skipping duplicate source name %s", source.name)
            continue
        seen.add(source.name)
        sources.append(source)

    return sources


def save_config(config: ConfigModel, config_path: Path) -> None:
    """Save configuration to YAML file."""
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w") as f:
        yaml.dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)


def save_sources(sources: List[SourceConfig], sources_path: Path) -> None:
    """Save sources to YAML file."""
    sources_path.parent.mkdir(parents=True, exist_ok=True)

    sources_data = {"sources": [s.model_dump() for s in sources]}

    with open(sources_path, "w") as f:
        yaml.dump(sources_data, f, default_flow_style=False, sort_keys=False)
