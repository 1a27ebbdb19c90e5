"""
Configuration Loader Module.

Loads the client configuration of an openQA instance:
- YAML and JSON configuration files.
- Schema validation using JSON Schema.
- Defaults for every optional setting and remote shorthands (o3, osd).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from loguru import logger

from openqa_access.client.instance import O3_URL
from openqa_access.client.resolver import DEFAULT_MAX_RECURSIONS
from openqa_access.config.schema_registry import SchemaRegistry, SchemaValidationError
from openqa_access.errors import OpenQAError
from openqa_access.events.session import DEFAULT_EXCHANGE
from openqa_access.transport import DEFAULT_USER_AGENT

CLIENT_CONFIG_SCHEMA = "client_config_schema"

REMOTE_ALIASES = {
    "o3": O3_URL,
    "ooo": O3_URL,
    "osd": "http://openqa.suse.de",
}


class ConfigurationError(OpenQAError):
    """Raised when a configuration file is invalid or cannot be loaded."""

    pass


def resolve_remote(remote: str) -> str:
    """Expand remote shorthands; full URLs are returned unchanged."""
    if remote.startswith(("http://", "https://")):
        return remote
    if not remote:
        return O3_URL
    return REMOTE_ALIASES.get(remote, remote)


@dataclass
class RabbitMQConfig:
    """Message bus settings."""

    remote: str = ""
    exchange: str = DEFAULT_EXCHANGE


@dataclass
class ClientConfig:
    """
    Runtime settings of the openQA client.

    Attributes:
        remote: Base URL of the openQA instance.
        api_key: API key (empty for anonymous access).
        api_secret: API secret.
        max_recursions: Maximum clone hops when following clones (0 = unbounded).
        allow_parallel: Allow concurrent requests to the instance.
        user_agent: User-Agent sent with every request.
        timeout_sec: Request timeout, None to block.
        rabbitmq: Message bus settings.
    """

    remote: str = O3_URL
    api_key: str = ""
    api_secret: str = ""
    max_recursions: int = DEFAULT_MAX_RECURSIONS
    allow_parallel: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    timeout_sec: Optional[float] = None
    rabbitmq: RabbitMQConfig = field(default_factory=RabbitMQConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientConfig":
        bus = data.get("rabbitmq") or {}
        return cls(
            remote=resolve_remote(data.get("remote", "")),
            api_key=data.get("api_key", ""),
            api_secret=data.get("api_secret", ""),
            max_recursions=data.get("max_recursions", DEFAULT_MAX_RECURSIONS),
            allow_parallel=data.get("allow_parallel", False),
            user_agent=data.get("user_agent", DEFAULT_USER_AGENT),
            timeout_sec=data.get("timeout_sec"),
            rabbitmq=RabbitMQConfig(
                remote=bus.get("remote", ""),
                exchange=bus.get("exchange", DEFAULT_EXCHANGE),
            ),
        )


class ConfigLoader:
    """
    Configuration loader with schema validation.

    Attributes:
        config_dir: Base directory for configuration files.
        schema_registry: Registry of JSON schemas for validation.
    """

    SUPPORTED_EXTENSIONS = {".yaml", ".yml", ".json"}

    def __init__(
        self,
        config_dir: str | Path = ".",
        schema_registry: Optional[SchemaRegistry] = None,
    ) -> None:
        self.config_dir = Path(config_dir)
        self.schema_registry = schema_registry or SchemaRegistry()
        self._cache: Dict[str, Dict[str, Any]] = {}

        logger.info(f"ConfigLoader initialized — config_dir={self.config_dir}")

    def load(
        self,
        filename: str,
        schema_name: Optional[str] = CLIENT_CONFIG_SCHEMA,
        *,
        use_cache: bool = True,
    ) -> Dict[str, Any]:
        """
        Load a configuration file with optional schema validation.

        Args:
            filename: Name or relative path of the config file within config_dir.
            schema_name: JSON schema to validate against, None to skip validation.
            use_cache: Whether to use cached config if available.

        Raises:
            ConfigurationError: If the file cannot be parsed or fails validation.
            FileNotFoundError: If the configuration file does not exist.
        """
        file_path = self._resolve_path(filename)
        cache_key = str(file_path.resolve())

        if use_cache and cache_key in self._cache:
            logger.debug(f"Returning cached config for: {filename}")
            return self._cache[cache_key]

        logger.info(f"Loading configuration: {file_path}")
        data = self._read_file(file_path)

        if schema_name:
            self._validate(data, schema_name)

        if use_cache:
            self._cache[cache_key] = data
        return data

    def load_client_config(self, filename: str = "openqa.yaml") -> ClientConfig:
        """Load and validate a client configuration file."""
        return ClientConfig.from_dict(self.load(filename))

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.debug("Configuration cache cleared.")

    def _resolve_path(self, filename: str) -> Path:
        """Resolve a filename to a full path, checking config_dir first."""
        path = Path(filename)
        if path.is_absolute() and path.exists():
            return path

        config_path = self.config_dir / filename
        if config_path.exists():
            return config_path

        if path.exists():
            return path

        raise FileNotFoundError(
            f"Configuration file not found: {filename} "
            f"(searched in {self.config_dir} and current directory)"
        )

    def _read_file(self, file_path: Path) -> Dict[str, Any]:
        """Read and parse a YAML or JSON file."""
        suffix = file_path.suffix.lower()
        if suffix not in self.SUPPORTED_EXTENSIONS:
            raise ConfigurationError(
                f"Unsupported file format '{suffix}'. "
                f"Supported: {self.SUPPORTED_EXTENSIONS}"
            )

        try:
            content = file_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Failed to read file {file_path}: {e}") from e

        try:
            if suffix in {".yaml", ".yml"}:
                data = yaml.safe_load(content)
            else:
                data = json.loads(content)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to parse {file_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file must contain a mapping (dict), "
                f"got {type(data).__name__}: {file_path}"
            )

        return data

    def _validate(self, data: Dict[str, Any], schema_name: str) -> None:
        try:
            self.schema_registry.validate(data, schema_name)
        except (SchemaValidationError, FileNotFoundError) as e:
            raise ConfigurationError(
                f"Configuration validation failed against schema '{schema_name}': {e}"
            ) from e
