"""
Configuration for build-tracker.

Sections are dataclasses that validate themselves on construction:
- ServiceConfig: build service URL, request timeout, credential
- PollingConfig: delays, error backoff and the polling deadline
- RegistryConfig: which durable store keeps active builds
- LoggingConfig: level and output format

``Settings`` groups them and loads from the environment or a YAML/TOML file.
"""

from .base import LogFormat, LogLevel, RegistryBackendType
from .logging import LoggingConfig
from .registry import RegistryConfig
from .service import PollingConfig, ServiceConfig
from .settings import Settings, configure, get_settings, load_env

__all__ = [
    "RegistryBackendType",
    "LogLevel",
    "LogFormat",
    "ServiceConfig",
    "PollingConfig",
    "RegistryConfig",
    "LoggingConfig",
    "Settings",
    "get_settings",
    "configure",
    "load_env",
]
