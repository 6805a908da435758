"""
Top-level Settings and the process-wide settings helpers.
"""

from __future__ import annotations

import dataclasses
import os
import tomllib
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from dotenv import find_dotenv, load_dotenv

from ..config_schema import CONFIG_SCHEMA
from ..errors import ConfigError
from .logging import LoggingConfig
from .registry import RegistryConfig
from .service import PollingConfig, ServiceConfig


def _optional_float(raw: str) -> float | None:
    if raw.strip().lower() in ("", "none", "null", "off"):
        return None
    return float(raw)


# (variable suffix, section, field, parser). Optional floats accept "off".
_ENV_FIELDS: list[tuple[str, str, str, Callable[[str], Any]]] = [
    ("BASE_URL", "service", "base_url", str),
    ("REQUEST_TIMEOUT", "service", "request_timeout", float),
    ("AUTH_TOKEN", "service", "auth_token", str),
    ("POLL_INITIAL_DELAY", "polling", "initial_delay", float),
    ("POLL_INTERVAL", "polling", "interval", float),
    ("POLL_MAX_INTERVAL", "polling", "max_interval", _optional_float),
    ("POLL_BACKOFF_FACTOR", "polling", "backoff_factor", float),
    ("POLL_MAX_DURATION", "polling", "max_poll_duration", _optional_float),
    ("REGISTRY_BACKEND", "registry", "backend", str.lower),
    ("REGISTRY_PATH", "registry", "path", Path),
    ("REDIS_URL", "registry", "redis_url", str),
    ("REGISTRY_NAMESPACE", "registry", "namespace", str),
    ("FALLBACK_DISPLAY_NAME", "registry", "fallback_display_name", str),
    ("LOG_LEVEL", "logging", "level", str.upper),
    ("LOG_FORMAT", "logging", "format", str.lower),
]


@dataclass
class Settings:
    """
    Everything the tracker needs: where the build service is, how to poll it,
    where active builds are persisted and how to log.

    Example:
        ```python
        settings = Settings.from_file("tracker.yaml")
        tracker = BuildTracker.from_settings(settings)
        ```
    """

    service: ServiceConfig = field(default_factory=ServiceConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, prefix: str = "BUILD_TRACKER_") -> Settings:
        """
        Build settings from ``{prefix}*`` environment variables.

        Example:
            BUILD_TRACKER_BASE_URL=https://builds.example.com/
            BUILD_TRACKER_POLL_INTERVAL=15
            BUILD_TRACKER_POLL_MAX_DURATION=off
            BUILD_TRACKER_REGISTRY_BACKEND=redis
        """
        sections: dict[str, dict[str, Any]] = {
            "service": {},
            "polling": {},
            "registry": {},
            "logging": {},
        }
        for suffix, section, name, parse in _ENV_FIELDS:
            raw = os.getenv(prefix + suffix)
            if raw is None:
                continue
            if raw == "" and parse is not _optional_float:
                continue
            sections[section][name] = parse(raw)
        return cls._from_sections(sections)

    @classmethod
    def from_file(cls, path: str | Path) -> Settings:
        """Load a ``.yaml``/``.yml`` or ``.toml`` file.

        Raises:
            FileNotFoundError: If the file does not exist
            ConfigError: If the format is unknown or the content is invalid
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        suffix = path.suffix.lower()
        if suffix in (".yaml", ".yml"):
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        elif suffix == ".toml":
            data = tomllib.loads(path.read_text(encoding="utf-8"))
        else:
            raise ConfigError(f"Unsupported config file format: {suffix}")

        return cls.from_dict(data)

    @classmethod
    def default(cls) -> Settings:
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """Validate ``data`` against the config schema and build Settings."""
        try:
            jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
        except jsonschema.ValidationError as exc:
            where = "/".join(str(p) for p in exc.absolute_path) or "<root>"
            raise ConfigError(
                f"Configuration validation failed at {where}: {exc.message}", cause=exc
            ) from exc
        return cls._from_sections(data)

    @classmethod
    def _from_sections(cls, sections: dict[str, dict[str, Any]]) -> Settings:
        return cls(
            service=ServiceConfig(**sections.get("service", {})),
            polling=PollingConfig(**sections.get("polling", {})),
            registry=RegistryConfig(**sections.get("registry", {})),
            logging=LoggingConfig(**sections.get("logging", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        """Plain-data form, suitable for ``from_dict`` or a YAML dump."""

        def plain(value: Any) -> Any:
            if isinstance(value, dict):
                return {k: plain(v) for k, v in value.items()}
            if isinstance(value, Path):
                return str(value)
            return value

        return plain(dataclasses.asdict(self))


# =============================================================================
# Process-wide settings
# =============================================================================

_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process settings, loading them from the environment once."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def configure(settings: Settings | None = None, **sections: Any) -> Settings:
    """
    Install process settings.

    Args:
        settings: Replaces the current settings entirely
        **sections: Replace single sections, e.g. ``polling=PollingConfig(interval=5)``
    """
    global _settings
    current = settings or get_settings()
    unknown = set(sections) - {f.name for f in dataclasses.fields(Settings)}
    if unknown:
        raise ConfigError(f"Unknown settings sections: {sorted(unknown)}")
    _settings = dataclasses.replace(current, **sections) if sections else current
    return _settings


def load_env(path: str | None = None, *, override: bool = False) -> bool:
    """
    Load a ``.env`` file into the environment.

    Returns:
        True if a file was found and loaded
    """
    env_path = path or find_dotenv(usecwd=True)
    if not env_path:
        return False
    return load_dotenv(env_path, override=override)


__all__ = ["Settings", "get_settings", "configure", "load_env"]
