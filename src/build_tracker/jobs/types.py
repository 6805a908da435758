"""
Job types for the build tracker.

This module defines the JobState enum and the records that describe one
remote APK build: the live BuildJob, the durable JobMeta kept for recovery,
and the StatusReport produced by a single status query.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any


class JobState(str, Enum):
    """Build lifecycle states.

    State transitions:
    - BUILDING -> COMPLETED (artifact available)
    - BUILDING -> FAILED (service reported a failed build)
    - BUILDING -> EXPIRED (no terminal answer within the polling deadline)
    """
    BUILDING = "building"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        """Check if this is a terminal state."""
        return self is not JobState.BUILDING


VALID_TRANSITIONS: dict[JobState, set[JobState]] = {
    JobState.BUILDING: {JobState.COMPLETED, JobState.FAILED, JobState.EXPIRED},
    # Terminal states have no valid transitions
    JobState.COMPLETED: set(),
    JobState.FAILED: set(),
    JobState.EXPIRED: set(),
}


@dataclass(frozen=True)
class JobMeta:
    """Display metadata captured at submission time.

    Stored next to the active-job entry so a resumed poller can name the
    build even when the owner is no longer loaded or has been renamed.
    """
    owner_id: str
    display_name: str
    started_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "display_name": self.display_name,
            "started_at": self.started_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JobMeta:
        """Deserialize, accepting the older ``agentId``/``agentName``/``startTime`` layout."""
        started = data.get("started_at", data.get("startTime"))
        if isinstance(started, str):
            started = datetime.fromisoformat(started.replace("Z", "+00:00")).timestamp()
        return cls(
            owner_id=data.get("owner_id") or data.get("agentId") or "",
            display_name=data.get("display_name") or data.get("agentName") or "",
            started_at=float(started) if started is not None else time.time(),
        )


@dataclass(frozen=True)
class BuildJob:
    """One remote build request and its observed lifecycle."""
    job_id: str
    owner_id: str
    display_name: str
    started_at: float = field(default_factory=time.time)

    state: JobState = JobState.BUILDING
    artifact_url: str | None = None  # Only when COMPLETED
    error_message: str | None = None  # Only when FAILED / EXPIRED
    progress: float | None = None  # Reported by some service versions

    # False when the registry write failed at submission (no crash recovery)
    persisted: bool = True

    @property
    def meta(self) -> JobMeta:
        return JobMeta(
            owner_id=self.owner_id,
            display_name=self.display_name,
            started_at=self.started_at,
        )

    @property
    def detail(self) -> str | None:
        """The artifact URL of a completed job, or the error message otherwise."""
        if self.state is JobState.COMPLETED:
            return self.artifact_url
        return self.error_message

    def can_transition_to(self, new_state: JobState) -> bool:
        """Check if transition to new_state is valid."""
        return new_state in VALID_TRANSITIONS.get(self.state, set())

    def transition_to(self, new_state: JobState, **changes: Any) -> BuildJob:
        """Create a new BuildJob in ``new_state``.

        Raises:
            ValueError: If the transition is invalid
        """
        if not self.can_transition_to(new_state):
            raise ValueError(
                f"Invalid transition: {self.state.value} -> {new_state.value}"
            )
        return replace(self, state=new_state, **changes)

    def complete(self, artifact_url: str) -> BuildJob:
        return self.transition_to(JobState.COMPLETED, artifact_url=artifact_url)

    def fail(self, error_message: str) -> BuildJob:
        return self.transition_to(JobState.FAILED, error_message=error_message)

    def expire(self, error_message: str) -> BuildJob:
        return self.transition_to(JobState.EXPIRED, error_message=error_message)

    def with_progress(self, progress: float | None) -> BuildJob:
        return replace(self, progress=progress)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "job_id": self.job_id,
            "owner_id": self.owner_id,
            "display_name": self.display_name,
            "started_at": self.started_at,
            "state": self.state.value,
            "artifact_url": self.artifact_url,
            "error_message": self.error_message,
            "progress": self.progress,
            "persisted": self.persisted,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BuildJob:
        """Deserialize from dictionary."""
        return cls(
            job_id=data["job_id"],
            owner_id=data["owner_id"],
            display_name=data["display_name"],
            started_at=data.get("started_at", time.time()),
            state=JobState(data.get("state", "building")),
            artifact_url=data.get("artifact_url"),
            error_message=data.get("error_message"),
            progress=data.get("progress"),
            persisted=data.get("persisted", True),
        )

    @classmethod
    def from_meta(cls, job_id: str, meta: JobMeta) -> BuildJob:
        return cls(
            job_id=job_id,
            owner_id=meta.owner_id,
            display_name=meta.display_name,
            started_at=meta.started_at,
        )


@dataclass(frozen=True)
class StatusReport:
    """Normalized answer to one build-status query.

    ``found`` is False while the service does not know the job yet; such a
    report means "keep polling", never "failed".
    """
    found: bool
    state: JobState = JobState.BUILDING
    artifact_url: str | None = None
    error_message: str | None = None
    progress: float | None = None

    @classmethod
    def not_found(cls) -> StatusReport:
        return cls(found=False)


__all__ = [
    "JobState",
    "JobMeta",
    "BuildJob",
    "StatusReport",
    "VALID_TRANSITIONS",
]
