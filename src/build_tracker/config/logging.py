"""
Log output settings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import get_args

from .base import LogFormat, LogLevel


@dataclass
class LoggingConfig:
    """Level and output format for the package logger."""

    level: LogLevel = "INFO"
    format: LogFormat = "json"

    def __post_init__(self):
        if self.level not in get_args(LogLevel):
            raise ValueError(f"level must be one of {get_args(LogLevel)}, got {self.level!r}")
        if self.format not in get_args(LogFormat):
            raise ValueError(f"format must be one of {get_args(LogFormat)}, got {self.format!r}")

    @property
    def json_output(self) -> bool:
        return self.format == "json"


__all__ = ["LoggingConfig"]
