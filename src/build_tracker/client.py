"""
HTTP client for the remote APK build service.

Endpoints (relative to the configured base URL):
- POST generate-apk                    start a build for an agent
- GET  build-status/{buildId}          poll one build
- POST simulate-build-complete/{id}    development hook that forces an outcome
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol, runtime_checkable

import aiohttp

from .config import ServiceConfig
from .errors import ErrorCode, ErrorContext, SubmissionFailed, TransientPollError
from .jobs.types import JobState, StatusReport
from .logging import get_logger, redact_token

GENERIC_SUBMIT_ERROR = "APK generation failed"


@runtime_checkable
class BuildService(Protocol):
    """What the submitter and pollers need from the remote service."""

    async def submit(
        self,
        owner_id: str,
        display_name: str,
        requester_id: str,
        auth_token: str | None = None,
    ) -> str:
        """Start a build and return its job id. Raises SubmissionFailed."""
        ...

    async def fetch_status(self, job_id: str) -> StatusReport:
        """Query one build. Raises TransientPollError."""
        ...


# =============================================================================
# Response parsing
# =============================================================================


def parse_submit_response(payload: Any) -> str:
    """Extract the job id from a ``generate-apk`` response body.

    Raises:
        SubmissionFailed: If the body reports failure or has no build id
    """
    if not isinstance(payload, dict):
        raise SubmissionFailed(
            "Build service returned an unexpected response",
            code=ErrorCode.SUBMISSION_REJECTED,
        )
    if not payload.get("success"):
        remote = payload.get("error") or payload.get("message")
        raise SubmissionFailed(
            str(remote) if remote else GENERIC_SUBMIT_ERROR,
            remote_message=str(remote) if remote else None,
            code=ErrorCode.SUBMISSION_REJECTED,
        )
    job_id = payload.get("buildId")
    if not job_id:
        raise SubmissionFailed(
            "Build service response did not include a build id",
            code=ErrorCode.SUBMISSION_MISSING_JOB_ID,
        )
    return str(job_id)


def _progress(raw: Any) -> float | None:
    if isinstance(raw, bool) or raw is None:
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def parse_status_response(payload: Any) -> StatusReport:
    """Normalize a ``build-status`` response body.

    ``success: false`` or a missing ``build`` object means the service does
    not know the job yet. A ``completed`` build without an artifact URL is
    still reported as building.
    """
    if not isinstance(payload, dict) or not payload.get("success"):
        return StatusReport.not_found()
    build = payload.get("build")
    if not isinstance(build, dict):
        return StatusReport.not_found()

    status = str(build.get("status") or "").lower()
    progress = _progress(build.get("progress"))

    if status == JobState.COMPLETED.value and build.get("apkUrl"):
        return StatusReport(
            found=True,
            state=JobState.COMPLETED,
            artifact_url=str(build["apkUrl"]),
            progress=progress,
        )
    if status == JobState.FAILED.value:
        return StatusReport(
            found=True,
            state=JobState.FAILED,
            error_message=str(build.get("error") or "APK build failed"),
            progress=progress,
        )
    return StatusReport(found=True, state=JobState.BUILDING, progress=progress)


# =============================================================================
# Client
# =============================================================================


class BuildServiceClient:
    """
    aiohttp client for the build service.

    Example:
        ```python
        async with BuildServiceClient(ServiceConfig(base_url="http://10.0.0.5:3000/")) as client:
            job_id = await client.submit("agent-42", "Helper Bot", "user-1")
            report = await client.fetch_status(job_id)
        ```
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.config = config or ServiceConfig()
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> BuildServiceClient:
        self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _url(self, path: str) -> str:
        return f"{self.config.base_url}{path}"

    @property
    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.config.request_timeout)

    async def submit(
        self,
        owner_id: str,
        display_name: str,
        requester_id: str,
        auth_token: str | None = None,
    ) -> str:
        """Start a build. Called once per user action; never retried here."""
        body = {
            "agentId": owner_id,
            "agentName": display_name,
            "userId": requester_id or "anonymous",
        }
        token = auth_token if auth_token is not None else self.config.auth_token
        headers = {"Accept": "*/*", "Authorization": token or ""}
        context = ErrorContext(owner_id=owner_id, operation="submit")
        get_logger().debug("Submitting build", owner_id=owner_id, auth=redact_token(token))

        try:
            async with self._get_session().post(
                self._url("generate-apk"), json=body, headers=headers, timeout=self._timeout
            ) as response:
                try:
                    payload = await response.json(content_type=None)
                except (ValueError, aiohttp.ContentTypeError):
                    payload = None
                if response.status >= 400:
                    remote = payload.get("error") if isinstance(payload, dict) else None
                    raise SubmissionFailed(
                        str(remote) if remote else f"Build service returned HTTP {response.status}",
                        remote_message=str(remote) if remote else None,
                        http_status=response.status,
                        code=ErrorCode.SUBMISSION_REJECTED,
                        context=context,
                    )
        except asyncio.TimeoutError as exc:
            raise SubmissionFailed(
                "Build service did not respond in time",
                code=ErrorCode.SUBMISSION_UNREACHABLE,
                context=context,
                cause=exc,
            ) from exc
        except aiohttp.ClientError as exc:
            raise SubmissionFailed(
                f"Could not reach build service: {exc}",
                code=ErrorCode.SUBMISSION_UNREACHABLE,
                context=context,
                cause=exc,
            ) from exc

        return parse_submit_response(payload)

    async def fetch_status(self, job_id: str) -> StatusReport:
        """Query one build. Any transport problem is a TransientPollError."""
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        context = ErrorContext(job_id=job_id, operation="fetch_status")

        try:
            async with self._get_session().get(
                self._url(f"build-status/{job_id}"), headers=headers, timeout=self._timeout
            ) as response:
                if response.status == 404:
                    return StatusReport.not_found()
                if response.status >= 400:
                    raise TransientPollError(
                        f"Build status returned HTTP {response.status}",
                        http_status=response.status,
                        code=ErrorCode.POLL_HTTP_STATUS,
                        context=context,
                    )
                try:
                    payload = await response.json(content_type=None)
                # Covers bodies that are not UTF-8 as well as malformed JSON
                except (ValueError, aiohttp.ContentTypeError) as exc:
                    raise TransientPollError(
                        "Build status response was not valid JSON",
                        code=ErrorCode.POLL_INVALID_RESPONSE,
                        context=context,
                        cause=exc,
                    ) from exc
        except asyncio.TimeoutError as exc:
            raise TransientPollError(
                "Build status query timed out",
                code=ErrorCode.POLL_TIMEOUT,
                context=context,
                cause=exc,
            ) from exc
        except aiohttp.ClientError as exc:
            raise TransientPollError(
                f"Build status query failed: {exc}",
                context=context,
                cause=exc,
            ) from exc

        return parse_status_response(payload)

    async def check_artifact(self, artifact_url: str) -> bool:
        """Return True if the artifact URL answers a HEAD request with 2xx."""
        try:
            async with self._get_session().head(
                artifact_url, allow_redirects=True, timeout=self._timeout
            ) as response:
                return 200 <= response.status < 300
        except (asyncio.TimeoutError, aiohttp.ClientError):
            return False

    async def simulate_completion(
        self,
        job_id: str,
        status: JobState,
        *,
        apk_url: str | None = None,
        error: str | None = None,
    ) -> dict[str, Any]:
        """Force a terminal outcome on a development build server."""
        if not status.is_terminal or status is JobState.EXPIRED:
            raise ValueError("status must be COMPLETED or FAILED")
        body: dict[str, Any] = {"status": status.value}
        if apk_url:
            body["apkUrl"] = apk_url
        if error:
            body["error"] = error

        async with self._get_session().post(
            self._url(f"simulate-build-complete/{job_id}"), json=body, timeout=self._timeout
        ) as response:
            response.raise_for_status()
            payload = await response.json(content_type=None)
        return payload if isinstance(payload, dict) else {}


__all__ = [
    "BuildService",
    "BuildServiceClient",
    "parse_submit_response",
    "parse_status_response",
    "GENERIC_SUBMIT_ERROR",
]
