"""
Exception hierarchy for the TM3 API client.

Every failure is raised from inside a coroutine, so callers see it when
they await the operation.
"""

from typing import Any


class TM3Error(Exception):
    """Base exception for TM3 API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_body = response_body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code:
            return f"{base} (HTTP {self.status_code})"
        return base


class UnknownEndpointError(TM3Error):
    """Raised when an operation/endpoint pair is not configured."""
    pass


class EmptyPayloadError(TM3Error):
    """Raised when a write operation is invoked without a payload."""
    pass


class RemoteError(TM3Error):
    """Raised when the API answers with a non-200 status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: Any = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, status_code=status_code, response_body=response_body)
        # Only populated in debug mode
        self.context = context


class UnauthorizedError(RemoteError):
    """Raised when the API rejects the request signature (401)."""
    pass


class NetworkError(TM3Error):
    """Raised when a request was sent but no response was received."""
    pass


class TransportError(TM3Error):
    """Raised when a request could not be constructed or transmitted."""
    pass


class ExportError(TM3Error):
    """Raised when an export stream cannot be decoded."""
    pass
