"""
Configuration Management Module.

Handles loading and validation of the client configuration file
(instance URL, API credentials, request policy, message bus settings).
"""

from openqa_access.config.loader import (
    ClientConfig,
    ConfigLoader,
    ConfigurationError,
    RabbitMQConfig,
    resolve_remote,
)
from openqa_access.config.schema_registry import SchemaRegistry, SchemaValidationError

__all__ = [
    "ClientConfig",
    "ConfigLoader",
    "ConfigurationError",
    "RabbitMQConfig",
    "SchemaRegistry",
    "SchemaValidationError",
    "resolve_remote",
]
