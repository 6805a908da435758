"""
Exceptions raised by build-tracker.

Every error carries an ErrorCode, a retryable flag and an ErrorContext that
names the job, owner and operation involved. A build the service reports as
failed is not an exception: listeners receive it as ``JobState.FAILED``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable identifiers for log queries and callers that branch on errors."""

    # Submission (1xxx)
    SUBMISSION_FAILED = "ERR_1000"
    SUBMISSION_REJECTED = "ERR_1001"
    SUBMISSION_UNREACHABLE = "ERR_1002"
    SUBMISSION_MISSING_JOB_ID = "ERR_1003"

    # Status polling (2xxx)
    POLL_ERROR = "ERR_2000"
    POLL_TIMEOUT = "ERR_2001"
    POLL_HTTP_STATUS = "ERR_2002"
    POLL_INVALID_RESPONSE = "ERR_2003"

    # Registry (3xxx)
    REGISTRY_ERROR = "ERR_3000"
    REGISTRY_READ_ERROR = "ERR_3001"
    REGISTRY_WRITE_ERROR = "ERR_3002"

    # Configuration (6xxx)
    CONFIG_ERROR = "ERR_6000"

    INTERNAL_ERROR = "ERR_9000"


@dataclass
class ErrorContext:
    """Where an error happened."""

    job_id: str | None = None
    owner_id: str | None = None
    operation: str | None = None
    attempt: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = {k: v for k, v in asdict(self).items() if k != "extra" and v is not None}
        data.update(self.extra)
        return data


class BuildTrackerError(Exception):
    """Root of the build-tracker exception tree.

    Subclasses set ``code`` and ``retryable`` as class attributes; both can
    be overridden per instance.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or type(self).code
        self.retryable = type(self).retryable if retryable is None else retryable
        self.context = context if context is not None else ErrorContext()
        self.cause = cause

    def __str__(self) -> str:
        text = f"[{self.code.value}] {self.message}"
        if self.context.job_id:
            text += f" (job_id={self.context.job_id})"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context.to_dict(),
            "cause": None if self.cause is None else str(self.cause),
        }


# =============================================================================
# Submission
# =============================================================================


class SubmissionFailed(BuildTrackerError):
    """
    The remote service rejected a build request or could not be reached.

    Never retried automatically: a second submission must be an explicit user
    action so that one owner does not end up with several concurrent builds.
    ``str()`` is the bare message so it can be shown to the user as-is.
    """

    code = ErrorCode.SUBMISSION_FAILED

    def __init__(
        self,
        message: str = "APK generation failed",
        *,
        remote_message: str | None = None,
        http_status: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.remote_message = remote_message
        self.http_status = http_status

    def __str__(self) -> str:
        return self.message


# =============================================================================
# Polling
# =============================================================================


class TransientPollError(BuildTrackerError):
    """A single status query failed. The poller logs it and asks again."""

    code = ErrorCode.POLL_ERROR
    retryable = True

    def __init__(
        self,
        message: str = "Build status query failed",
        *,
        http_status: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.http_status = http_status


# =============================================================================
# Registry
# =============================================================================


class RegistryError(BuildTrackerError):
    code = ErrorCode.REGISTRY_ERROR


class RegistryWriteError(RegistryError):
    """The durable store rejected a write. Crash recovery for the job is lost."""

    code = ErrorCode.REGISTRY_WRITE_ERROR


class RegistryReadError(RegistryError):
    code = ErrorCode.REGISTRY_READ_ERROR


class ConfigError(BuildTrackerError, ValueError):
    """A configuration file could not be used."""

    code = ErrorCode.CONFIG_ERROR


__all__ = [
    "ErrorCode",
    "ErrorContext",
    "BuildTrackerError",
    "SubmissionFailed",
    "TransientPollError",
    "RegistryError",
    "RegistryWriteError",
    "RegistryReadError",
    "ConfigError",
]
