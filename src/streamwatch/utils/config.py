"""
Configuration loader for streamwatch.

This module provides configuration management with:
- Multiple configuration sources (JSON, YAML, TOML, .env files, env vars)
- Schema validation through pydantic
- Prioritized merging of sources
"""

import os
import json
import yaml
import toml
from pathlib import Path
from typing import Optional, Dict, Any, List, Union
from pydantic import BaseModel, Field, field_validator, model_validator, ValidationError, ConfigDict
import asyncio

from .logging import get_logger
from .errors import ConfigurationError


logger = get_logger("streamwatch.config")

ENV_PREFIX = "STREAMWATCH_"
ENV_NESTING = "__"


class ConfigSource(BaseModel):
    """Configuration source definition."""
    path: Optional[Path] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    priority: int = 0
    source_type: str = "dict"

    model_config = ConfigDict(arbitrary_types_allowed=True)


def _split_list(v):
    if isinstance(v, str):
        return [item.strip() for item in v.split(",") if item.strip()]
    return v


class DiscordConfig(BaseModel):
    """Discord REST access."""
    token: str = ""
    api_base: str = "https://discord.com/api/v10"
    request_timeout: float = 30.0


class TwitchConfig(BaseModel):
    """Twitch Helix access and stream classification."""
    client_id: str = ""
    client_secret: str = ""
    game_id: str = ""
    api_base: str = "https://api.twitch.tv/helix"
    auth_url: str = "https://id.twitch.tv/oauth2/token"
    page_size: int = Field(default=100, ge=1, le=100)
    poll_interval: float = 60.0
    auth_retry_delay: float = 20.0
    request_timeout: float = 30.0
    filter_tags: List[str] = Field(default_factory=list)
    filter_keywords: List[str] = Field(default_factory=list)

    @field_validator('filter_tags', 'filter_keywords', mode='before')
    @classmethod
    def parse_lists(cls, v):
        """Accept comma-separated strings."""
        return _split_list(v)


class DirectoryConfig(BaseModel):
    """Classification directory channel."""
    channel_id: Optional[str] = None
    refresh_interval: float = 600.0
    history_limit: int = Field(default=100, ge=1, le=100)


class SyncConfig(BaseModel):
    """Reconciliation settings shared by all agents."""
    rate_limit_delay: float = Field(default=1.0, ge=0.0)
    dwell_seconds: float = Field(default=15 * 60, gt=0)
    history_limit: int = Field(default=100, ge=1, le=100)
    icon_urls: List[str] = Field(default_factory=lambda: ["", "", ""])

    @field_validator('icon_urls', mode='before')
    @classmethod
    def parse_icons(cls, v):
        """Accept comma-separated strings; one icon per tier."""
        v = _split_list(v)
        if isinstance(v, list) and len(v) != 3:
            raise ValueError("icon_urls needs exactly 3 entries (one per tier)")
        if isinstance(v, list):
            # The icon is how a message records its tier
            set_icons = [icon for icon in v if icon]
            if len(set_icons) != len(set(set_icons)):
                raise ValueError("icon_urls must differ between tiers")
        return v


class AgentConfig(BaseModel):
    """One destination channel."""
    channel_id: str
    filtered: bool = False


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "console"
    directory: Optional[Path] = None
    enable_sentry: bool = False
    sentry_dsn: Optional[str] = None

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator('format')
    @classmethod
    def validate_format(cls, v):
        if v not in ("json", "console"):
            raise ValueError(f"Invalid log format: {v}")
        return v


class StreamwatchConfig(BaseModel):
    """Main streamwatch configuration."""
    app_name: str = "streamwatch"
    debug: bool = False

    discord: DiscordConfig = Field(default_factory=DiscordConfig)
    twitch: TwitchConfig = Field(default_factory=TwitchConfig)
    directory: DirectoryConfig = Field(default_factory=DirectoryConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    agents: List[AgentConfig] = Field(default_factory=list)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(validate_assignment=True)

    @field_validator('agents', mode='before')
    @classmethod
    def parse_agents(cls, v):
        """Accept "<channel>:<filtered>" items, alone or comma-separated."""
        v = _split_list(v)
        if not isinstance(v, list):
            return v
        agents = []
        for item in v:
            if isinstance(item, str):
                channel_id, _, filtered = item.partition(":")
                agents.append({
                    "channel_id": channel_id.strip(),
                    "filtered": filtered.strip().lower() in ("true", "yes", "1", "on"),
                })
            else:
                agents.append(item)
        return agents

    @model_validator(mode='after')
    def check_unique_channels(self):
        channels = [a.channel_id for a in self.agents]
        if len(channels) != len(set(channels)):
            raise ValueError("each agent needs its own channel")
        return self


class ConfigLoader:
    """Configuration loader with multiple source support."""

    def __init__(self):
        self._sources: List[ConfigSource] = []
        self._config: Optional[StreamwatchConfig] = None
        self._lock = asyncio.Lock()

    def add_source(
        self,
        source: Union[str, Path, Dict[str, Any]],
        priority: int = 0,
        source_type: Optional[str] = None
    ) -> None:
        """
        Add configuration source.

        Args:
            source: Configuration source (file path or dict)
            priority: Source priority (higher wins)
            source_type: Source type (auto-detected if None)
        """
        if isinstance(source, (str, Path)):
            path = Path(source)
            if not source_type:
                source_type = self._detect_source_type(path)

            self._sources.append(ConfigSource(
                path=path,
                priority=priority,
                source_type=source_type
            ))
        else:
            self._sources.append(ConfigSource(
                data=source,
                priority=priority,
                source_type="dict"
            ))

        # Lowest priority first so later merges win
        self._sources.sort(key=lambda s: s.priority)

    def _detect_source_type(self, path: Path) -> str:
        """Detect configuration file type."""
        suffix = path.suffix.lower()
        if suffix == ".json":
            return "json"
        elif suffix in (".yaml", ".yml"):
            return "yaml"
        elif suffix == ".toml":
            return "toml"
        elif suffix == ".env" or path.name == ".env":
            return "env"
        else:
            raise ConfigurationError(f"Unknown config file type: {suffix}")

    async def load(self, overrides: Optional[Dict[str, Any]] = None) -> StreamwatchConfig:
        """
        Load configuration from all sources.

        Environment variables win over every source; ``overrides`` (command
        line flags) win over the environment.

        Args:
            overrides: Values merged after the environment

        Returns:
            Merged configuration
        """
        async with self._lock:
            merged_data: Dict[str, Any] = {}

            for source in self._sources:
                try:
                    data = self._load_source(source)
                except (OSError, ValueError, yaml.YAMLError) as e:
                    raise ConfigurationError(
                        f"Failed to load config source {source.path or 'dict'}: {e}",
                        cause=e,
                    ) from e
                merged_data = self._deep_merge(merged_data, data)

            env_data = self._load_env_vars(os.environ)
            merged_data = self._deep_merge(merged_data, env_data)
            if overrides:
                merged_data = self._deep_merge(merged_data, overrides)

            try:
                self._config = StreamwatchConfig(**merged_data)
            except ValidationError as e:
                errors = []
                for error in e.errors():
                    field = ".".join(str(x) for x in error["loc"])
                    errors.append(f"{field}: {error['msg']}")

                raise ConfigurationError(
                    f"Configuration validation failed: {'; '.join(errors)}"
                ) from e

            logger.info(
                "configuration_loaded",
                sources=len(self._sources),
                agents=len(self._config.agents),
            )
            return self._config

    def _load_source(self, source: ConfigSource) -> Dict[str, Any]:
        """Load data from a configuration source."""
        if source.path is None:
            return source.data

        if not source.path.exists():
            logger.warning("config_file_not_found", path=str(source.path))
            return {}

        content = source.path.read_text()

        if source.source_type == "json":
            return json.loads(content)
        elif source.source_type == "yaml":
            return yaml.safe_load(content) or {}
        elif source.source_type == "toml":
            return toml.loads(content)
        elif source.source_type == "env":
            return self._parse_env_file(content)
        else:
            raise ConfigurationError(f"Unknown source type: {source.source_type}")

    def _parse_env_file(self, content: str) -> Dict[str, Any]:
        """Parse .env file format, using the same keys as the environment."""
        pairs = {}
        for line in content.splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            pairs[key.strip()] = value.strip().strip('"').strip("'")
        return self._load_env_vars(pairs)

    def _load_env_vars(self, environ: Dict[str, str]) -> Dict[str, Any]:
        """
        Collect STREAMWATCH_* variables into a nested dict.

        ``STREAMWATCH_TWITCH__CLIENT_ID`` maps to ``twitch.client_id``.
        """
        result: Dict[str, Any] = {}

        for key, value in environ.items():
            if not key.startswith(ENV_PREFIX):
                continue
            parts = key[len(ENV_PREFIX):].lower().split(ENV_NESTING)
            current = result
            for part in parts[:-1]:
                current = current.setdefault(part, {})
            current[parts[-1]] = value

        return result

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in update.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def get_config(self) -> StreamwatchConfig:
        """Get current configuration."""
        if self._config is None:
            raise ConfigurationError("Configuration not loaded")
        return self._config


async def load_config(
    config_paths: Optional[List[Union[str, Path]]] = None,
    extra_config: Optional[Dict[str, Any]] = None
) -> StreamwatchConfig:
    """
    Load configuration from standard locations.

    Args:
        config_paths: Additional configuration paths
        extra_config: Command line overrides; applied after the environment

    Returns:
        Loaded configuration
    """
    loader = ConfigLoader()

    default_paths = [
        Path.home() / ".streamwatch" / "config.yaml",
        Path("./streamwatch.yaml"),
        Path("./streamwatch.json"),
        Path("./streamwatch.toml"),
        Path("./.env"),
    ]

    for path in default_paths:
        if path.exists():
            loader.add_source(path, priority=10)

    if config_paths:
        for i, path in enumerate(config_paths):
            loader.add_source(path, priority=20 + i)

    return await loader.load(overrides=extra_config)


__all__ = [
    'StreamwatchConfig',
    'DiscordConfig',
    'TwitchConfig',
    'DirectoryConfig',
    'SyncConfig',
    'AgentConfig',
    'LoggingConfig',
    'ConfigLoader',
    'load_config',
]
