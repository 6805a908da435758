"""
Persistent job registry.

This module provides the JobRegistry interface and an in-memory
implementation. Durable backends live in ``build_tracker.storage``.

The registry holds two logical tables:
- activeJobsByOwner: owner_id -> job_id of the owner's build in flight
- jobMeta: job_id -> JobMeta (owner, display name, submission time)
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from .types import JobMeta

ACTIVE_JOBS_TABLE = "activeJobsByOwner"
JOB_META_TABLE = "jobMeta"


class JobRegistry(ABC):
    """Abstract interface for the durable active-job registry.

    Every mutation is a single-key upsert or delete. Backends wrap storage
    failures in RegistryWriteError / RegistryReadError.
    """

    @abstractmethod
    async def put(self, owner_id: str, job_id: str) -> None:
        """Store or overwrite the active job for an owner (last write wins)."""
        ...

    @abstractmethod
    async def get_all(self) -> dict[str, str]:
        """Return a snapshot of owner_id -> job_id. Empty when nothing is stored."""
        ...

    @abstractmethod
    async def remove(self, owner_id: str, job_id: str | None = None) -> bool:
        """Delete the entry for an owner. Idempotent.

        When ``job_id`` is given, the entry is only removed if it still
        points at that job, so a finished build never evicts a newer one
        submitted for the same owner.

        Returns:
            True if an entry was removed
        """
        ...

    @abstractmethod
    async def put_meta(self, job_id: str, meta: JobMeta) -> None:
        """Store display metadata for a job."""
        ...

    @abstractmethod
    async def get_meta(self, job_id: str) -> JobMeta | None:
        """Get display metadata for a job, or None if absent."""
        ...

    @abstractmethod
    async def remove_meta(self, job_id: str) -> bool:
        """Delete display metadata for a job. Idempotent."""
        ...

    async def get(self, owner_id: str) -> str | None:
        """Get the active job id for one owner."""
        return (await self.get_all()).get(owner_id)

    async def close(self) -> None:
        """Release backend resources."""
        return None


def validate_key(name: str, value: str) -> None:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{name} must be a non-empty string")


class InMemoryJobRegistry(JobRegistry):
    """In-memory registry implementation.

    Suitable for testing and sessions that do not need crash recovery.
    Guarded by asyncio.Lock.
    """

    def __init__(self):
        self._active: dict[str, str] = {}
        self._meta: dict[str, JobMeta] = {}
        self._lock = asyncio.Lock()

    async def put(self, owner_id: str, job_id: str) -> None:
        validate_key("owner_id", owner_id)
        validate_key("job_id", job_id)
        async with self._lock:
            self._active[owner_id] = job_id

    async def get_all(self) -> dict[str, str]:
        async with self._lock:
            return dict(self._active)

    async def remove(self, owner_id: str, job_id: str | None = None) -> bool:
        async with self._lock:
            current = self._active.get(owner_id)
            if current is None:
                return False
            if job_id is not None and current != job_id:
                return False
            del self._active[owner_id]
            return True

    async def put_meta(self, job_id: str, meta: JobMeta) -> None:
        validate_key("job_id", job_id)
        async with self._lock:
            self._meta[job_id] = meta

    async def get_meta(self, job_id: str) -> JobMeta | None:
        async with self._lock:
            return self._meta.get(job_id)

    async def remove_meta(self, job_id: str) -> bool:
        async with self._lock:
            return self._meta.pop(job_id, None) is not None


__all__ = [
    "JobRegistry",
    "InMemoryJobRegistry",
    "ACTIVE_JOBS_TABLE",
    "JOB_META_TABLE",
    "validate_key",
]
