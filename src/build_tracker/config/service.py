"""
Remote build service and polling configuration.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ServiceConfig:
    """Where the build service lives and how long a single request may take."""

    base_url: str = "http://localhost:3000/"
    request_timeout: float = 10.0
    auth_token: str | None = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError("base_url must be a valid HTTP(S) URL")
        if not self.base_url.endswith("/"):
            self.base_url += "/"
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")


@dataclass
class PollingConfig:
    """
    Status polling schedule.

    Builds take minutes, so the first query waits ``initial_delay`` and then
    repeats every ``interval`` seconds. Setting ``max_interval`` lets
    consecutive transient errors stretch the wait by ``backoff_factor`` up to
    that cap. ``max_poll_duration`` bounds how long a job is watched, measured
    from its submission time; ``None`` polls until the service answers.
    """

    initial_delay: float = 10.0
    interval: float = 10.0
    max_interval: float | None = None
    backoff_factor: float = 2.0
    max_poll_duration: float | None = 2 * 60 * 60

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.initial_delay < 0:
            raise ValueError("initial_delay cannot be negative")
        if self.interval < 0:
            raise ValueError("interval cannot be negative")
        if self.max_interval is not None and self.max_interval < self.interval:
            raise ValueError("max_interval cannot be smaller than interval")
        if self.backoff_factor < 1.0:
            raise ValueError("backoff_factor must be >= 1.0")
        if self.max_poll_duration is not None and self.max_poll_duration <= 0:
            raise ValueError("max_poll_duration must be positive")


__all__ = ["ServiceConfig", "PollingConfig"]
