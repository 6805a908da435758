"""
Literal types shared by the configuration sections.
"""

from __future__ import annotations

from typing import Literal

# Where active builds are persisted between sessions
RegistryBackendType = Literal["memory", "file", "redis"]

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["text", "json"]


__all__ = ["RegistryBackendType", "LogLevel", "LogFormat"]
