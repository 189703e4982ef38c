"""
Proxy Routes - Upstream Request Forwarding
===========================================

This module implements the single proxy endpoint that fronts the upstream
form backend for browser clients.

Request pipeline:
-----------------
1. Origin must be in the allow-list (403 otherwise, nothing else runs)
2. CORS headers are computed from the validated origin and attached to
   every later response
3. OPTIONS is answered locally (preflight, 204)
4. GET is forwarded with its query string copied verbatim
5. POST is size-checked (413), JSON-checked when declared as JSON (400)
   and forwarded with its original Content-Type
6. Anything else is rejected with 405

Upstream transport failures are logged and turned into a generic 500; the
exception detail is never sent to the caller. When the upstream answers,
its status and body are relayed unchanged.
"""

import json
import logging
from typing import Dict, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, Response

from ..config import Settings
from ..models import ErrorEnvelope
from .cors import ALLOWED_METHODS, build_cors_headers, is_origin_allowed

logger = logging.getLogger(__name__)

# Create router
proxy_router = APIRouter()

PROXY_PATH = "/"

ORIGIN_REJECTED = "Origine non autorisée"
PAYLOAD_TOO_LARGE = "Taille de la requête trop importante"
INVALID_JSON = "Format JSON invalide"
METHOD_NOT_ALLOWED = "Méthode non supportée"
UPSTREAM_FAILURE = "Erreur lors de la communication avec le serveur"


class PayloadTooLargeError(Exception):
    """Raised while streaming a body that grows past the configured limit"""
    pass


# ============================================================================
# Dependencies
# ============================================================================

def get_upstream_client(request: Request) -> httpx.AsyncClient:
    """
    Dependency to get the shared upstream HTTP client from app state.

    Raises:
        HTTPException: 503 if the application has not been started
    """
    client = getattr(request.app.state, "upstream_client", None)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Upstream client not initialized"
        )
    return client


def get_proxy_settings(request: Request) -> Settings:
    """Dependency returning the settings the app was created with."""
    return request.app.state.settings


# ============================================================================
# Helpers
# ============================================================================

def error_response(
    status_code: int,
    message: str,
    headers: Optional[Dict[str, str]] = None
) -> JSONResponse:
    """Build a JSON error envelope response."""
    return JSONResponse(
        status_code=status_code,
        content=ErrorEnvelope(error=message).model_dump(),
        headers=headers,
    )


def relay_response(upstream_response: httpx.Response, cors_headers: Dict[str, str]) -> Response:
    """Relay upstream status and body as-is, forcing a JSON content type."""
    return Response(
        content=upstream_response.content,
        status_code=upstream_response.status_code,
        headers=cors_headers,
        media_type="application/json",
    )


def declared_content_length(request: Request) -> int:
    """Content-Length header as int; absent or non-numeric counts as 0."""
    raw = request.headers.get("content-length")
    if not raw:
        return 0
    try:
        return int(raw)
    except ValueError:
        return 0


async def read_body_limited(request: Request, limit: int) -> bytes:
    """
    Read the request body, stopping as soon as it exceeds limit bytes.

    The declared Content-Length is checked before this is called; this
    catches clients that under-declare it.

    Raises:
        PayloadTooLargeError: If more than limit bytes are received
    """
    chunks = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            raise PayloadTooLargeError(received)
        chunks.append(chunk)
    return b"".join(chunks)


def _reject_constant(name: str):
    # NaN and Infinity are not JSON
    raise ValueError(f"Invalid JSON constant: {name}")


# ============================================================================
# Request Handling
# ============================================================================

async def forward_get(
    request: Request,
    upstream_client: httpx.AsyncClient,
    settings: Settings,
    cors_headers: Dict[str, str]
) -> Response:
    """Forward a GET with every query parameter copied verbatim."""
    params = request.query_params.multi_items()

    logger.info(
        "Forwarding GET to upstream",
        extra={"param_count": len(params)}
    )

    try:
        upstream_response = await upstream_client.get(
            settings.upstream_url_str,
            params=params,
            headers={"User-Agent": settings.UPSTREAM_USER_AGENT},
        )
    except httpx.HTTPError as e:
        logger.error(f"Upstream GET failed: {e!r}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, UPSTREAM_FAILURE, cors_headers)
    except Exception as e:
        logger.error(f"Unexpected error during upstream GET: {e}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, UPSTREAM_FAILURE, cors_headers)

    return relay_response(upstream_response, cors_headers)


async def forward_post(
    request: Request,
    upstream_client: httpx.AsyncClient,
    settings: Settings,
    cors_headers: Dict[str, str]
) -> Response:
    """
    Forward a POST after size and JSON checks.

    JSON bodies are re-serialised compactly; other bodies are forwarded
    byte for byte.
    """
    content_length = declared_content_length(request)
    if content_length > settings.MAX_PAYLOAD_SIZE:
        logger.warning(
            "Rejected POST: declared payload too large",
            extra={"content_length": content_length}
        )
        return error_response(413, PAYLOAD_TOO_LARGE, cors_headers)

    try:
        body = await read_body_limited(request, settings.MAX_PAYLOAD_SIZE)
    except PayloadTooLargeError:
        logger.warning(
            "Rejected POST: body exceeded declared length and payload limit",
            extra={"content_length": content_length}
        )
        return error_response(413, PAYLOAD_TOO_LARGE, cors_headers)

    content_type = request.headers.get("content-type")

    if content_type and "application/json" in content_type.lower():
        try:
            payload = json.loads(body, parse_constant=_reject_constant)
            # Overflowing numbers (1e400) parse as inf and must not be re-emitted
            content = json.dumps(
                payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False
            ).encode("utf-8")
        except ValueError:
            logger.warning("Rejected POST: malformed JSON body")
            return error_response(status.HTTP_400_BAD_REQUEST, INVALID_JSON, cors_headers)
    else:
        content = body

    upstream_headers = {
        "Content-Type": content_type or "application/json",
        "User-Agent": settings.UPSTREAM_USER_AGENT,
    }

    logger.info(
        "Forwarding POST to upstream",
        extra={"body_size": len(content), "content_type": upstream_headers["Content-Type"]}
    )

    try:
        upstream_response = await upstream_client.post(
            settings.upstream_url_str,
            content=content,
            headers=upstream_headers,
        )
    except httpx.HTTPError as e:
        logger.error(f"Upstream POST failed: {e!r}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, UPSTREAM_FAILURE, cors_headers)
    except Exception as e:
        logger.error(f"Unexpected error during upstream POST: {e}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, UPSTREAM_FAILURE, cors_headers)

    return relay_response(upstream_response, cors_headers)


async def handle_request(
    request: Request,
    upstream_client: Optional[httpx.AsyncClient],
    settings: Settings
) -> Response:
    """
    Validate one inbound request and produce its response.

    Memoryless: nothing is kept between calls. At most one upstream call is
    made, and only for accepted GET and POST requests.

    Args:
        request: Inbound request
        upstream_client: Shared client for upstream calls (unused for
            rejected requests and preflights)
        settings: Proxy settings

    Returns:
        Response with CORS headers for every allowed origin
    """
    origin = request.headers.get("origin")

    if not is_origin_allowed(origin, settings.allowed_origins_list):
        logger.warning(
            "Rejected request from disallowed origin",
            extra={"origin": origin, "method": request.method}
        )
        return error_response(status.HTTP_403_FORBIDDEN, ORIGIN_REJECTED)

    cors_headers = build_cors_headers(origin)
    method = request.method.upper()

    if method == "OPTIONS":
        return Response(status_code=status.HTTP_204_NO_CONTENT, headers=cors_headers)

    if method == "GET":
        return await forward_get(request, upstream_client, settings, cors_headers)

    if method == "POST":
        return await forward_post(request, upstream_client, settings, cors_headers)

    logger.warning(f"Rejected unsupported method: {method}")
    return error_response(
        status.HTTP_405_METHOD_NOT_ALLOWED,
        METHOD_NOT_ALLOWED,
        {**cors_headers, "Allow": ALLOWED_METHODS},
    )


# ============================================================================
# Proxy Endpoint
# ============================================================================

@proxy_router.api_route(PROXY_PATH, methods=["GET", "POST", "OPTIONS"])
async def proxy_endpoint(
    request: Request,
    upstream_client: httpx.AsyncClient = Depends(get_upstream_client),
    settings: Settings = Depends(get_proxy_settings)
) -> Response:
    """
    Proxy entry point.

    Other methods never reach this function: the router rejects them and
    the application's 405 handler sends them back through handle_request.
    """
    return await handle_request(request, upstream_client, settings)
