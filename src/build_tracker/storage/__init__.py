"""
Durable registry backends.

- FileJobRegistry: single JSON document with atomic replace
- RedisJobRegistry: two Redis hashes
"""

from .factory import create_registry
from .fs import FileJobRegistry
from .redis import RedisJobRegistry

__all__ = [
    "FileJobRegistry",
    "RedisJobRegistry",
    "create_registry",
]
