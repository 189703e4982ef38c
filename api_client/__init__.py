"""
Contribution Client Package

Async client for the contribution form backend: CSRF token lifecycle,
request building, envelope interpretation and the one-shot retry on a
rejected token.

Modules:
- client: ContributionApiClient and ClientState
- validation: Contribution form rules (run before any form is posted)
- errors: Structured error kinds raised by the client
- config: ClientSettings loaded from CONTRIB_* environment variables
"""

from .client import ClientState, ContributionApiClient
from .config import ClientSettings, get_client_settings
from .errors import (
    ApiClientError,
    ErrorKind,
    FormValidationError,
    InvalidCsrfTokenError,
    InvalidResponseError,
    MissingCsrfTokenError,
    TransportError,
    UpstreamApplicationError,
    UpstreamHTTPError,
)
from .validation import validate_form_data

__all__ = [
    "ApiClientError",
    "ClientSettings",
    "ClientState",
    "ContributionApiClient",
    "ErrorKind",
    "FormValidationError",
    "InvalidCsrfTokenError",
    "InvalidResponseError",
    "MissingCsrfTokenError",
    "TransportError",
    "UpstreamApplicationError",
    "UpstreamHTTPError",
    "get_client_settings",
    "validate_form_data",
]
