"""
Recovery of builds left in the registry by an earlier session.
"""

from __future__ import annotations

import time

from ..errors import RegistryError
from ..logging import StructuredLogger, get_logger
from .poller import PollerManager
from .registry import JobRegistry
from .types import BuildJob, JobMeta

DEFAULT_DISPLAY_NAME = "Unknown Agent"


class RecoveryScanner:
    """Re-attaches pollers to every build still registered as active.

    Run once per screen activation. The scanner only reads the registry and
    never talks to the submit endpoint; pollers it starts do the cleanup
    when their build finishes.
    """

    def __init__(
        self,
        registry: JobRegistry,
        manager: PollerManager,
        fallback_display_name: str = DEFAULT_DISPLAY_NAME,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.registry = registry
        self.manager = manager
        self.fallback_display_name = fallback_display_name
        self._logger = logger or get_logger()

    async def _load_meta(self, owner_id: str, job_id: str) -> JobMeta:
        try:
            meta = await self.registry.get_meta(job_id)
        except RegistryError as exc:
            self._logger.log_error(exc, "Could not read build metadata", job_id=job_id)
            meta = None

        if meta is None:
            self._logger.warning(
                "No metadata for resumed build, using fallback name",
                job_id=job_id,
                owner_id=owner_id,
            )
            return JobMeta(
                owner_id=owner_id,
                display_name=self.fallback_display_name,
                started_at=time.time(),
            )
        # The registry key is authoritative for ownership.
        return JobMeta(
            owner_id=owner_id,
            display_name=meta.display_name or self.fallback_display_name,
            started_at=meta.started_at,
        )

    async def scan(self) -> list[BuildJob]:
        """Resume polling for each registered build.

        Returns:
            The jobs that are being monitored after the scan, including ones
            that already had a live poller.
        """
        try:
            active = await self.registry.get_all()
        except RegistryError as exc:
            self._logger.log_error(exc, "Could not read active builds; nothing resumed")
            return []

        resumed: list[BuildJob] = []
        for owner_id, job_id in active.items():
            if not job_id:
                continue
            if self.manager.is_polling(job_id):
                poller = self.manager.poller(job_id)
                if poller is not None:
                    resumed.append(poller.job)
                continue

            meta = await self._load_meta(owner_id, job_id)
            job = BuildJob.from_meta(job_id, meta)
            self.manager.start(job)
            resumed.append(job)
            self._logger.info(
                "Resumed polling for build",
                job_id=job_id,
                owner_id=owner_id,
                display_name=job.display_name,
            )

        return resumed


__all__ = ["RecoveryScanner", "DEFAULT_DISPLAY_NAME"]
