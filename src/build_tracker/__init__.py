"""
Client-side tracker for remote APK builds.

Environment variables are loaded from the nearest `.env` so the service URL
and credential can be configured without code changes.
"""
from dotenv import find_dotenv, load_dotenv

# Keep side effect so BUILD_TRACKER_* settings are loaded on import.
_ = load_dotenv(find_dotenv(usecwd=True))

from .client import BuildService, BuildServiceClient
from .config import (
    LoggingConfig,
    PollingConfig,
    RegistryConfig,
    ServiceConfig,
    Settings,
    configure,
    get_settings,
)
from .errors import (
    BuildTrackerError,
    ConfigError,
    ErrorCode,
    RegistryReadError,
    RegistryWriteError,
    SubmissionFailed,
    TransientPollError,
)
from .jobs import (
    BuildJob,
    InMemoryJobRegistry,
    JobMeta,
    JobRegistry,
    JobState,
    PollerManager,
    RecoveryScanner,
    StatusPoller,
    StatusReport,
)
from .storage import FileJobRegistry, RedisJobRegistry, create_registry
from .tracker import BuildTracker

__all__ = [
    "BuildTracker",
    "BuildService",
    "BuildServiceClient",
    "JobState",
    "JobMeta",
    "BuildJob",
    "StatusReport",
    "JobRegistry",
    "InMemoryJobRegistry",
    "FileJobRegistry",
    "RedisJobRegistry",
    "create_registry",
    "StatusPoller",
    "PollerManager",
    "RecoveryScanner",
    "Settings",
    "ServiceConfig",
    "PollingConfig",
    "RegistryConfig",
    "LoggingConfig",
    "get_settings",
    "configure",
    "BuildTrackerError",
    "ErrorCode",
    "SubmissionFailed",
    "TransientPollError",
    "RegistryWriteError",
    "RegistryReadError",
    "ConfigError",
]
