"""
Job submission.

Starts one remote build for an owner, records it in the registry and hands
it to the poller manager.
"""

from __future__ import annotations

import time
from dataclasses import replace
from typing import TYPE_CHECKING

from ..errors import ErrorCode, ErrorContext, RegistryError, SubmissionFailed
from ..logging import StructuredLogger, get_logger
from .poller import PollerManager
from .registry import JobRegistry
from .types import BuildJob

if TYPE_CHECKING:
    from ..client import BuildService


class JobSubmitter:
    """Submits builds. One call to ``submit`` is one remote request.

    Example:
        ```python
        submitter = JobSubmitter(client, registry, manager)
        job = await submitter.submit("agent-42", "Helper Bot", "user-1")
        ```
    """

    def __init__(
        self,
        service: BuildService,
        registry: JobRegistry,
        manager: PollerManager,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.service = service
        self.registry = registry
        self.manager = manager
        self._logger = logger or get_logger()

    async def submit(
        self,
        owner_id: str,
        display_name: str,
        requester_id: str,
        auth_token: str | None = None,
    ) -> BuildJob:
        """Start a build and begin polling it.

        Args:
            owner_id: Agent the build is for (registry key)
            display_name: Label used in notifications
            requester_id: Forwarded to the service as-is
            auth_token: Overrides the configured credential

        Returns:
            The new job in BUILDING state. ``persisted`` is False when the
            registry could not be read or written; polling still runs but
            will not survive a restart.

        Raises:
            ValueError: If owner_id or display_name is empty
            SubmissionFailed: If the service rejected the request or could
                not be reached. The registry is left untouched.
        """
        if not owner_id:
            raise ValueError("owner_id must be a non-empty string")
        if not display_name:
            raise ValueError("display_name must be a non-empty string")

        try:
            job_id = await self.service.submit(owner_id, display_name, requester_id, auth_token)
        except SubmissionFailed as exc:
            if exc.context.owner_id is None:
                exc.context.owner_id = owner_id
            self._logger.log_error(exc, "Build submission failed", owner_id=owner_id)
            raise
        if not job_id:
            raise SubmissionFailed(
                "Build service response did not include a build id",
                code=ErrorCode.SUBMISSION_MISSING_JOB_ID,
                context=ErrorContext(owner_id=owner_id, operation="submit"),
            )

        job = BuildJob(
            job_id=job_id,
            owner_id=owner_id,
            display_name=display_name,
            started_at=time.time(),
        )

        try:
            await self.registry.put(owner_id, job_id)
            await self.registry.put_meta(job_id, job.meta)
        except RegistryError as exc:
            self._logger.log_error(
                exc,
                "Could not persist build; it will not be resumed after a restart",
                job_id=job_id,
                owner_id=owner_id,
            )
            job = replace(job, persisted=False)

        self._logger.info(
            "Build submitted",
            job_id=job_id,
            owner_id=owner_id,
            display_name=display_name,
            persisted=job.persisted,
        )
        self.manager.start(job)
        return job


__all__ = ["JobSubmitter"]
