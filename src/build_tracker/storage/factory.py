"""
Registry factory.
"""

from __future__ import annotations

from ..config import RegistryConfig
from ..jobs.registry import InMemoryJobRegistry, JobRegistry
from .fs import FileJobRegistry
from .redis import RedisJobRegistry


def create_registry(config: RegistryConfig) -> JobRegistry:
    backend = config.backend

    if backend == "memory":
        return InMemoryJobRegistry()

    if backend == "file":
        return FileJobRegistry(config.path)

    if backend == "redis":
        return RedisJobRegistry.from_url(config.redis_url, namespace=config.namespace)

    raise ValueError(f"Unknown registry backend: {backend}")


__all__ = ["create_registry"]
