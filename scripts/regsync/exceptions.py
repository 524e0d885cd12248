"""
Exception hierarchy for the source orchestration core.
"""

from typing import Any, Dict, Optional


class RegSyncError(Exception):
    """Base exception for all orchestration errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(RegSyncError):
    """Raised when source configuration is invalid or references unknown sources."""


class NotFoundError(ConfigurationError):
    """Raised when a source id was never registered."""

    def __init__(self, source_id: str):
        super().__init__(f"Unknown data source: {source_id}", {"source_id": source_id})
        self.source_id = source_id


class DuplicateSourceError(ConfigurationError):
    """Raised when registering a source id that already exists."""

    def __init__(self, source_id: str):
        super().__init__(f"Data source already registered: {source_id}", {"source_id": source_id})
        self.source_id = source_id


class RateLimitExceeded(RegSyncError):
    """Quota window for a source is exhausted; retried on the next cycle."""


class InvocationFailure(RegSyncError):
    """Network, transport or non-2xx failure while invoking a source.

    Attributes:
        status_code: HTTP status when the failure came from a response
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        details = {"status_code": status_code} if status_code is not None else None
        super().__init__(message, details)
        self.status_code = status_code


class SyncFailedError(RegSyncError):
    """Raised by a scheduled sync when no invoked source succeeded."""


class SchedulerCallbackError(RegSyncError):
    """Wraps an exception raised inside a scheduled job body."""

    def __init__(self, job_id: str, cause: BaseException):
        super().__init__(f"Scheduled job '{job_id}' failed: {cause}", {"job_id": job_id})
        self.job_id = job_id
        self.cause = cause
