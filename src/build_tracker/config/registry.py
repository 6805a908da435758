"""
Persistent job registry configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .base import RegistryBackendType


def _default_registry_path() -> Path:
    return Path.home() / ".build_tracker" / "registry.json"


@dataclass
class RegistryConfig:
    """Which durable store holds active jobs and their display metadata."""

    backend: RegistryBackendType = "file"
    path: Path = field(default_factory=_default_registry_path)
    redis_url: str = "redis://localhost:6379/0"
    namespace: str = "build_tracker"

    # Used by recovery when a job has no stored metadata
    fallback_display_name: str = "Unknown Agent"

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.backend not in ("memory", "file", "redis"):
            raise ValueError(f"Invalid registry backend: {self.backend}")
        if isinstance(self.path, str):
            self.path = Path(self.path)
        self.path = self.path.expanduser()
        if not self.namespace:
            raise ValueError("namespace cannot be empty")
        if not self.fallback_display_name:
            raise ValueError("fallback_display_name cannot be empty")


__all__ = ["RegistryConfig"]
