"""
Client error types.

Every failure surfaced by the contribution client is an ApiClientError
carrying a kind, the human readable message and, when there is one, the
underlying cause. Callers branch on ``exc.kind`` or on the subclass.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    MISSING_TOKEN = "missing_token"
    HTTP = "http"
    TRANSPORT = "transport"
    INVALID_FORMAT = "invalid_format"
    UPSTREAM = "upstream"
    INVALID_TOKEN = "invalid_token"
    UNEXPECTED = "unexpected"


class ApiClientError(Exception):
    """Base exception for contribution client errors"""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(
        self,
        message: str,
        *,
        kind: Optional[ErrorKind] = None,
        cause: Optional[BaseException] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        self.cause = cause
        self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class FormValidationError(ApiClientError):
    """Form data rejected locally; nothing was sent"""
    kind = ErrorKind.VALIDATION


class MissingCsrfTokenError(ApiClientError):
    """Token refresh answered without a csrfToken field"""
    kind = ErrorKind.MISSING_TOKEN


class UpstreamHTTPError(ApiClientError):
    """Non-2xx HTTP status"""
    kind = ErrorKind.HTTP


class TransportError(ApiClientError):
    """Network-level failure, no HTTP response received"""
    kind = ErrorKind.TRANSPORT


class InvalidResponseError(ApiClientError):
    """Body is not JSON or does not have the expected shape"""
    kind = ErrorKind.INVALID_FORMAT


class UpstreamApplicationError(ApiClientError):
    """2xx response carrying result: 'error' in its envelope"""
    kind = ErrorKind.UPSTREAM


class InvalidCsrfTokenError(UpstreamApplicationError):
    """Upstream rejected the CSRF token; recoverable by refreshing it"""
    kind = ErrorKind.INVALID_TOKEN
