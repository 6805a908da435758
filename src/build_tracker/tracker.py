"""
Presentation-facing build tracker.

``BuildTracker`` wires the service client, the registry, the poller manager,
the submitter and the recovery scanner together. A UI layer creates one per
session, calls ``scan_and_resume`` on screen activation and ``close`` at
logout.
"""

from __future__ import annotations

from .client import BuildService, BuildServiceClient
from .config import Settings, get_settings
from .jobs.poller import JobCallbacks, PollerManager, ProgressCallback, TerminalCallback
from .jobs.recovery import RecoveryScanner
from .jobs.registry import JobRegistry
from .jobs.submitter import JobSubmitter
from .jobs.types import BuildJob, StatusReport
from .logging import StructuredLogger, configure_logging
from .storage import create_registry


def _noop() -> None:
    return None


class BuildTracker:
    """
    Submits APK builds and watches them until they finish.

    Example:
        ```python
        async with BuildTracker.from_settings() as tracker:
            await tracker.scan_and_resume()

            job_id = await tracker.submit_job("agent-42", "Helper Bot", "user-1")
            tracker.on_terminal(job_id, lambda state, detail: print(state, detail))
        ```
    """

    def __init__(
        self,
        service: BuildService,
        registry: JobRegistry,
        *,
        settings: Settings | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.service = service
        self.registry = registry
        self._logger = logger or configure_logging(
            level=self.settings.logging.level,
            json_output=self.settings.logging.json_output,
        )

        self.callbacks = JobCallbacks(self._logger)
        self.manager = PollerManager(
            service,
            registry,
            callbacks=self.callbacks,
            config=self.settings.polling,
            logger=self._logger,
        )
        self.submitter = JobSubmitter(service, registry, self.manager, logger=self._logger)
        self.scanner = RecoveryScanner(
            registry,
            self.manager,
            fallback_display_name=self.settings.registry.fallback_display_name,
            logger=self._logger,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> BuildTracker:
        """Build a tracker with an aiohttp client and the configured registry."""
        settings = settings or get_settings()
        return cls(
            BuildServiceClient(settings.service),
            create_registry(settings.registry),
            settings=settings,
        )

    async def __aenter__(self) -> BuildTracker:
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.close()

    async def submit_job(
        self,
        owner_id: str,
        display_name: str,
        requester_id: str,
        auth_token: str | None = None,
    ) -> str:
        """Start a build and return its job id. Raises SubmissionFailed."""
        job = await self.submitter.submit(owner_id, display_name, requester_id, auth_token)
        return job.job_id

    def on_progress(self, job_id: str, callback: ProgressCallback):
        """Called with ``(job_id, progress)`` after each non-terminal poll."""
        if self._already_finished(job_id):
            return _noop
        return self.callbacks.on_progress(job_id, callback)

    def on_terminal(self, job_id: str, callback: TerminalCallback):
        """Called once with ``(state, artifact_url or error_message)``.

        Builds that already finished are not tracked any more; use ``wait``
        to read their final state.
        """
        if self._already_finished(job_id):
            return _noop
        return self.callbacks.on_terminal(job_id, callback)

    def _already_finished(self, job_id: str) -> bool:
        if not self.manager.is_finished(job_id):
            return False
        self._logger.warning("Listener ignored, build already finished", job_id=job_id)
        return True

    async def scan_and_resume(self) -> list[BuildJob]:
        return await self.scanner.scan()

    async def fetch_status(self, job_id: str) -> StatusReport:
        """One-off status query, outside any poller."""
        return await self.service.fetch_status(job_id)

    async def check_artifact(self, artifact_url: str) -> bool:
        check = getattr(self.service, "check_artifact", None)
        if check is None:
            return True
        return await check(artifact_url)

    async def wait(self, job_id: str) -> BuildJob | None:
        return await self.manager.wait(job_id)

    def active_job_ids(self) -> list[str]:
        return self.manager.active_job_ids()

    async def close(self) -> None:
        """Stop polling and release connections. Registry entries are kept."""
        await self.manager.close()
        await self.registry.close()
        close = getattr(self.service, "close", None)
        if close is not None:
            await close()


__all__ = ["BuildTracker"]
