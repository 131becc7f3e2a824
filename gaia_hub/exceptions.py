"""Exception hierarchy for the Gaia hub storage drivers.

Every failure raised by a driver is one of the classes below so callers can
pattern-match on type (or on the stable ``error_code``) without knowing which
backend is configured.
"""

from __future__ import annotations

from typing import Any

INVALID_PATH_MESSAGE = "Invalid Path"


class GaiaHubError(Exception):
    """Base class for all driver-layer errors."""

    default_error_code = "UNKNOWN_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for structured logs and HTTP responses."""
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class InvalidPath(GaiaHubError):
    """Raised when a path or namespace fails the traversal check.

    The message is always ``"Invalid Path"``; callers match on it.
    """

    default_error_code = "INVALID_PATH"

    def __init__(self, path: str | None = None):
        super().__init__(INVALID_PATH_MESSAGE, details={"path": path})


class ConfigurationError(GaiaHubError):
    """Missing driver configuration or a bucket/container mismatch.

    Fatal: never retried.
    """

    default_error_code = "CONFIGURATION_ERROR"


class BucketMismatchError(ConfigurationError):
    """A backend call named a different bucket than the one the driver is bound to."""

    default_error_code = "BUCKET_MISMATCH"

    def __init__(self, expected: str, actual: str):
        super().__init__(
            f"Unexpected bucket name: {actual}. Expected {expected}",
            details={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class UpstreamError(GaiaHubError):
    """A failure reported by the injected backend client."""

    default_error_code = "UPSTREAM_ERROR"

    def __init__(self, backend: str, operation: str, cause: BaseException):
        super().__init__(
            f"{backend} {operation} failed: {cause}",
            details={
                "backend": backend,
                "operation": operation,
                "cause_type": type(cause).__name__,
            },
        )
        self.backend = backend
        self.operation = operation
