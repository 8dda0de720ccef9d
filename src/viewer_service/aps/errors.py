from typing import Any, Optional


class PlatformError(Exception):
    """Base exception for failures talking to the remote platform."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or "platform_error"
        self.details = details or {}
        super().__init__(self.message)


class AuthFailure(PlatformError):
    """Token issuance failed. Nothing was cached."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, "auth_failure", details)


class TransportFailure(PlatformError):
    """The remote service could not be reached (connect error, timeout)."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, "transport_failure", details)


class BackendFailure(PlatformError):
    """The remote service answered with a non-success status."""

    def __init__(self, message: str, status_code: int, body: str = ""):
        super().__init__(message, "backend_failure", {"status_code": status_code})
        self.status_code = status_code
        self.body = body


class NotFoundRecoverable(BackendFailure):
    """A 404 from the remote service.

    Only the bucket lookup and the manifest lookup turn this into a fallback;
    every other call lets it propagate like any other BackendFailure.
    """

    def __init__(self, message: str, body: str = ""):
        super().__init__(message, 404, body)
        self.error_code = "not_found"
