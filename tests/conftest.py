"""
Shared test fixtures and fakes for build-tracker tests.

This module provides:
- A scripted fake build service (records every call)
- Status report factories
- An in-memory registry and a fast polling schedule
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any

import pytest

from build_tracker.config import PollingConfig
from build_tracker.errors import SubmissionFailed
from build_tracker.jobs import InMemoryJobRegistry, JobCallbacks, PollerManager
from build_tracker.jobs.types import JobState, StatusReport
from build_tracker.logging import StructuredLogger

# =============================================================================
# Status Report Factories
# =============================================================================


def building(progress: float | None = None) -> StatusReport:
    return StatusReport(found=True, state=JobState.BUILDING, progress=progress)


def completed(url: str = "https://x/y.apk") -> StatusReport:
    return StatusReport(found=True, state=JobState.COMPLETED, artifact_url=url)


def failed(message: str = "Gradle build failed") -> StatusReport:
    return StatusReport(found=True, state=JobState.FAILED, error_message=message)


# =============================================================================
# Fake Build Service
# =============================================================================


class FakeBuildService:
    """Scripted stand-in for BuildServiceClient.

    ``submit`` hands out ids from ``job_ids``. ``fetch_status`` replays the
    script registered for a job; an exception in the script is raised. Once
    a script is exhausted the call blocks until cancelled, so a poller that
    is still running can be observed.
    """

    def __init__(self, job_ids: tuple[str, ...] = ("b-1",)) -> None:
        self.job_ids = deque(job_ids)
        self.scripts: dict[str, deque[StatusReport | Exception]] = {}
        self.submit_errors: dict[str, SubmissionFailed] = {}
        self.submit_calls: list[dict[str, Any]] = []
        self.status_calls: list[str] = []
        self.checked_urls: list[str] = []
        self.closed = False

    def script(self, job_id: str, *items: StatusReport | Exception) -> None:
        self.scripts.setdefault(job_id, deque()).extend(items)

    def reject(self, owner_id: str, error: SubmissionFailed) -> None:
        self.submit_errors[owner_id] = error

    async def submit(self, owner_id, display_name, requester_id, auth_token=None) -> str:
        self.submit_calls.append({
            "owner_id": owner_id,
            "display_name": display_name,
            "requester_id": requester_id,
            "auth_token": auth_token,
        })
        if owner_id in self.submit_errors:
            raise self.submit_errors[owner_id]
        return self.job_ids.popleft()

    async def fetch_status(self, job_id: str) -> StatusReport:
        self.status_calls.append(job_id)
        script = self.scripts.get(job_id)
        if not script:
            await asyncio.Event().wait()
        item = script.popleft()
        if isinstance(item, Exception):
            raise item
        return item

    async def check_artifact(self, artifact_url: str) -> bool:
        self.checked_urls.append(artifact_url)
        return artifact_url.endswith(".apk")

    async def close(self) -> None:
        self.closed = True

    def polls_for(self, job_id: str) -> int:
        return self.status_calls.count(job_id)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_service():
    """A fake build service that hands out job id ``b-1``."""
    return FakeBuildService()


@pytest.fixture
def memory_registry():
    """Provide an in-memory registry."""
    return InMemoryJobRegistry()


@pytest.fixture
def fast_polling():
    """No waiting between polls and no deadline."""
    return PollingConfig(initial_delay=0, interval=0, max_poll_duration=None)


@pytest.fixture
def quiet_logger():
    return StructuredLogger("build_tracker.tests", level="CRITICAL")


@pytest.fixture
def callbacks(quiet_logger):
    return JobCallbacks(quiet_logger)


@pytest.fixture
def manager(fake_service, memory_registry, callbacks, fast_polling, quiet_logger):
    """PollerManager wired to the fake service and in-memory registry."""
    return PollerManager(
        fake_service,
        memory_registry,
        callbacks=callbacks,
        config=fast_polling,
        logger=quiet_logger,
    )


@pytest.fixture
def wait_until():
    """Yield to the event loop until ``predicate()`` holds."""

    async def _wait(predicate, timeout: float = 2.0) -> None:
        async def _spin():
            while not predicate():
                await asyncio.sleep(0)

        await asyncio.wait_for(_spin(), timeout)

    return _wait


@pytest.fixture
def reports():
    """Status report factories: ``reports.building()`` and friends."""

    class _Reports:
        building = staticmethod(building)
        completed = staticmethod(completed)
        failed = staticmethod(failed)

    return _Reports
