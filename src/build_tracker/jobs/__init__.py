"""
Build job tracking.

- types: JobState, BuildJob, JobMeta, StatusReport
- registry: JobRegistry interface and the in-memory implementation
- submitter: JobSubmitter
- poller: StatusPoller, PollerManager, JobCallbacks
- recovery: RecoveryScanner
"""

from .poller import JobCallbacks, PollerManager, ProgressCallback, StatusPoller, TerminalCallback
from .recovery import DEFAULT_DISPLAY_NAME, RecoveryScanner
from .registry import (
    ACTIVE_JOBS_TABLE,
    JOB_META_TABLE,
    InMemoryJobRegistry,
    JobRegistry,
)
from .submitter import JobSubmitter
from .types import VALID_TRANSITIONS, BuildJob, JobMeta, JobState, StatusReport

__all__ = [
    # Types
    "JobState",
    "JobMeta",
    "BuildJob",
    "StatusReport",
    "VALID_TRANSITIONS",
    # Registry
    "JobRegistry",
    "InMemoryJobRegistry",
    "ACTIVE_JOBS_TABLE",
    "JOB_META_TABLE",
    # Polling
    "JobCallbacks",
    "StatusPoller",
    "PollerManager",
    "ProgressCallback",
    "TerminalCallback",
    # Submission / recovery
    "JobSubmitter",
    "RecoveryScanner",
    "DEFAULT_DISPLAY_NAME",
]
