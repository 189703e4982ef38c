"""
Contribution API Client
=======================

Async client for the contribution form backend, reached directly or through
the edge proxy.

Responsibilities:
    - CSRF token lifecycle (fetch, replace on every response carrying one)
    - Building requests (origin injection, token injection on POST)
    - Interpreting upstream envelopes (HTTP errors, bad JSON, result: error)
    - One-shot retry when the upstream rejects a stale token on submit

State machine:
    uninitialized --init ok--> ready
    uninitialized --init fails--> error --(any operation)--> init again

The client is an explicit object: build one per page/session and pass it to
whoever needs it. Readiness is signalled through observer callbacks
registered with on_ready() / on_error(), or by awaiting init() directly.

Usage:
    async with ContributionApiClient(api_url, origin) as client:
        client.on_error(lambda message: print(message))
        contributions = await client.get_contributions()
        await client.submit_contribution(form)
"""

import functools
import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

import httpx

from .config import ClientSettings
from .errors import (
    ApiClientError,
    ErrorKind,
    InvalidCsrfTokenError,
    InvalidResponseError,
    MissingCsrfTokenError,
    TransportError,
    UpstreamApplicationError,
    UpstreamHTTPError,
)
from .validation import validate_form_data

logger = logging.getLogger(__name__)

DEFAULT_INVALID_TOKEN_MARKER = "jeton invalide"
GENERIC_UPSTREAM_ERROR = "Erreur inconnue du serveur"

ReadyCallback = Callable[[], Union[None, Awaitable[None]]]
ErrorCallback = Callable[[str], Union[None, Awaitable[None]]]


class ClientState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    ERROR = "error"


def _surface_errors(method):
    """
    Public method boundary: record the failure as last error and re-raise
    it as an ApiClientError.
    """
    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except ApiClientError as exc:
            self._last_error = exc.message
            raise
        except Exception as exc:
            error = ApiClientError(
                f"Erreur inattendue: {exc}",
                kind=ErrorKind.UNEXPECTED,
                cause=exc,
            )
            self._last_error = error.message
            logger.error(f"Unexpected error in {method.__name__}", exc_info=True)
            raise error from exc
    return wrapper


class ContributionApiClient:
    """
    Client holding the CSRF token for one page/session.

    Attributes:
        api_url: Base URL requests are sent to
        origin: Origin of the calling page, sent as header and parameter
        invalid_token_marker: Substring of an upstream error message that
            means the CSRF token was rejected
    """

    def __init__(
        self,
        api_url: str,
        origin: str,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        invalid_token_marker: str = DEFAULT_INVALID_TOKEN_MARKER,
    ):
        """
        Initialize the client.

        Args:
            api_url: Edge proxy (or upstream) URL
            origin: Origin of the page the client runs on
            http_client: Optional shared httpx client; not closed by aclose()
            invalid_token_marker: Marker matched literally against upstream
                error messages
        """
        self.api_url = api_url
        self.origin = origin
        self.invalid_token_marker = invalid_token_marker

        self._http = http_client or httpx.AsyncClient(follow_redirects=True)
        self._owns_http = http_client is None

        self._csrf_token: Optional[str] = None
        self._state = ClientState.UNINITIALIZED
        self._last_error: Optional[str] = None

        self._ready_callbacks: List[ReadyCallback] = []
        self._error_callbacks: List[ErrorCallback] = []

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        http_client: Optional[httpx.AsyncClient] = None
    ) -> "ContributionApiClient":
        return cls(
            settings.api_url_str,
            settings.ORIGIN,
            http_client=http_client,
            invalid_token_marker=settings.INVALID_TOKEN_MARKER,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "ContributionApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def csrf_token(self) -> Optional[str]:
        return self._csrf_token

    def get_last_error(self) -> Optional[str]:
        """Most recently recorded error message; None before any failure and after a successful submission."""
        return self._last_error

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def on_ready(self, callback: ReadyCallback) -> ReadyCallback:
        """Register a callback fired (without arguments) each time init succeeds."""
        self._ready_callbacks.append(callback)
        return callback

    def on_error(self, callback: ErrorCallback) -> ErrorCallback:
        """Register a callback fired with the error message each time init fails."""
        self._error_callbacks.append(callback)
        return callback

    async def _notify(self, callbacks: List[Callable[..., Any]], *args: Any) -> None:
        for callback in list(callbacks):
            try:
                result = callback(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                # An observer must never break the client
                logger.error("Client observer raised", exc_info=True)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @_surface_errors
    async def init(self) -> None:
        """
        Fetch a CSRF token and move to the ready state.

        Concurrent calls are not coalesced: each one performs its own
        token refresh.

        Raises:
            ApiClientError: The refresh failure, after the state was set to
                error and error observers were notified
        """
        try:
            await self.refresh_csrf_token()
        except ApiClientError as exc:
            self._state = ClientState.ERROR
            self._last_error = exc.message
            logger.error(
                f"Client initialisation failed: {exc.message}",
                extra={"error_kind": exc.kind.value}
            )
            await self._notify(self._error_callbacks, exc.message)
            raise

        self._state = ClientState.READY
        logger.info("Client ready")
        await self._notify(self._ready_callbacks)

    async def _ensure_ready(self) -> None:
        if self._state is not ClientState.READY:
            await self.init()

    @_surface_errors
    async def refresh_csrf_token(self) -> str:
        """
        Request a fresh CSRF token.

        Returns:
            The new token, now held by the client

        Raises:
            MissingCsrfTokenError: If the response has no csrfToken; the
                previously held token is kept
        """
        previous = self._csrf_token
        payload = await self.request("GET")

        token = payload.get("csrfToken") if isinstance(payload, dict) else None
        if not token:
            self._csrf_token = previous
            raise MissingCsrfTokenError("Jeton CSRF manquant dans la réponse du serveur")

        self._csrf_token = token
        logger.debug("CSRF token refreshed")
        return token

    @_surface_errors
    async def request(
        self,
        method: str = "GET",
        params: Optional[Mapping[str, Any]] = None,
        data: Optional[Mapping[str, Any]] = None
    ) -> Any:
        """
        Send one request and interpret the upstream envelope.

        The origin is added to the query string when absent. POST bodies
        get the current csrfToken and origin. Cookies are never sent.

        Args:
            method: HTTP method
            params: Query parameters
            data: JSON body fields (POST only)

        Returns:
            Parsed JSON body

        Raises:
            TransportError: No HTTP response
            UpstreamHTTPError: Non-2xx status
            InvalidResponseError: Body is not JSON
            InvalidCsrfTokenError: result == "error" with the token marker
            UpstreamApplicationError: Any other result == "error"
        """
        method = method.upper()

        query = dict(params or {})
        query.setdefault("origin", self.origin)

        kwargs: Dict[str, Any] = {
            "params": query,
            "headers": {"Origin": self.origin},
        }
        if method == "POST":
            body = dict(data or {})
            body["csrfToken"] = self._csrf_token
            body["origin"] = self.origin
            kwargs["json"] = body

        # Token-based auth: nothing from the cookie jar goes out
        self._http.cookies.clear()

        try:
            response = await self._http.request(method, self.api_url, **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"Erreur réseau: {exc}", cause=exc) from exc

        if not response.is_success:
            raise UpstreamHTTPError(
                f"Erreur HTTP: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise InvalidResponseError(
                "Format de réponse invalide",
                cause=exc,
                status_code=response.status_code,
            ) from exc

        if not isinstance(payload, dict):
            return payload

        new_token = payload.get("newCsrfToken") or payload.get("csrfToken")
        if new_token:
            self._csrf_token = new_token

        if payload.get("result") == "error":
            message = str(payload.get("error") or GENERIC_UPSTREAM_ERROR)
            if self.invalid_token_marker in message:
                raise InvalidCsrfTokenError(message, status_code=response.status_code)
            raise UpstreamApplicationError(message, status_code=response.status_code)

        return payload

    @_surface_errors
    async def get_contributions(self) -> List[Any]:
        """
        Fetch the list of contributions.

        Raises:
            InvalidResponseError: If the body is not {"result": "success", "data": [...]}
        """
        await self._ensure_ready()

        payload = await self.request("GET", {"action": "getData"})

        if (
            not isinstance(payload, dict)
            or payload.get("result") != "success"
            or not isinstance(payload.get("data"), list)
        ):
            raise InvalidResponseError("Format de données invalide")

        return payload["data"]

    @_surface_errors
    async def submit_contribution(self, form_data: Mapping[str, Any]) -> Any:
        """
        Validate and submit a contribution form.

        If the upstream rejects the CSRF token, the token is refreshed and
        the identical form is submitted one more time. A second failure is
        raised as is. A successful submission clears the last error.

        Returns:
            Parsed upstream response

        Raises:
            FormValidationError: Before any POST is sent
            ApiClientError: Any other failure
        """
        await self._ensure_ready()
        validate_form_data(form_data)

        form = dict(form_data)
        try:
            result = await self.request("POST", data=form)
        except InvalidCsrfTokenError as exc:
            logger.warning(
                "CSRF token rejected, refreshing and resubmitting once",
                extra={"upstream_error": exc.message}
            )
        else:
            self._last_error = None
            return result

        await self.refresh_csrf_token()
        result = await self.request("POST", data=form)
        self._last_error = None
        return result

    def validate_form_data(self, data: Any) -> bool:
        """See api_client.validation.validate_form_data."""
        try:
            return validate_form_data(data)
        except ApiClientError as exc:
            self._last_error = exc.message
            raise
