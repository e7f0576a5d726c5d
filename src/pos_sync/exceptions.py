"""Domain-specific exceptions for POS Sync.

This module defines custom exceptions that are part of the public API.
All exceptions inherit from PosSyncError for easy catching.

The orchestrator is the only place that decides between retrying and
halting: ApiAuthorizationError is fatal, every other ETLError is retryable.
"""

from __future__ import annotations


class PosSyncError(Exception):
    """Base exception for all POS Sync errors."""

    pass


class ConfigError(PosSyncError):
    """Raised when there is a configuration error.

    This exception is raised when:
    - Required environment variables are missing
    - Configuration values cannot be parsed
    - The service-account key file cannot be read
    """

    pass


class ETLError(PosSyncError):
    """Raised when a pipeline stage fails (extraction or sink write)."""

    pass


class ExtractionError(ETLError):
    """Raised when data extraction from the POS API fails."""

    pass


class ApiRequestError(ExtractionError):
    """Raised for any non-2xx API response or network-level failure.

    Attributes:
        status: HTTP status code, or None when no response was received.
        reason: HTTP reason phrase or the underlying error message.
        url: Requested URL.
    """

    def __init__(self, status: int | None, reason: str, url: str = "") -> None:
        self.status = status
        self.reason = reason
        self.url = url
        if status is None:
            message = f"Request to {url} failed: {reason}"
        else:
            message = f"POS API error {status} {reason} ({url})"
        super().__init__(message)


class ApiAuthorizationError(ApiRequestError):
    """Raised when the POS API rejects the access token (HTTP 401).

    A bad credential does not heal by itself, so this error is never retried.
    """

    def __init__(self, reason: str = "Unauthorized", url: str = "") -> None:
        super().__init__(401, reason, url)


class SinkWriteError(ETLError):
    """Raised when clearing, writing or formatting the spreadsheet fails."""

    pass


class PipelineHalted(PosSyncError):
    """Raised when a sync run ends fatally.

    Attributes:
        cause: The last error seen by the orchestrator.
        attempts: Number of attempts made before halting.
    """

    def __init__(self, cause: BaseException, attempts: int) -> None:
        self.cause = cause
        self.attempts = attempts
        super().__init__(f"Sync halted after {attempts} attempt(s): {cause}")
