"""
FastAPI Edge Proxy Application Factory
=======================================

This is the main entry point for the edge proxy that sits between the
browser-side contribution client and the upstream form backend.

Architecture:
    Browser → ApiClient → Edge Proxy (this service) → Upstream form backend

Routes:
    - /         : Proxied GET/POST/OPTIONS to the upstream (origin-checked)
    - /health   : Health check endpoint

Environment Variables Required:
    - UPSTREAM_URL: Upstream form backend URL
    - ALLOWED_ORIGINS: Comma-separated allowed origins (e.g., "https://djamchid.github.io")
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn edge_proxy.app.main:create_app --factory --reload --port 8787

    Production:
        edge-proxy
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import Settings, get_settings, validate_configuration
from .models import ErrorEnvelope, HealthResponse
from .proxy import proxy_router
from .proxy.cors import build_cors_headers, is_origin_allowed
from .proxy.routes import PROXY_PATH, handle_request


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def create_upstream_client(settings: Settings) -> httpx.AsyncClient:
    """
    Create the pooled client used for every upstream call.

    Redirects are followed: Apps Script web apps answer with a 302 to the
    content host. Timeouts are httpx defaults.
    """
    return httpx.AsyncClient(
        follow_redirects=True,
        headers={"User-Agent": settings.UPSTREAM_USER_AGENT},
    )


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup tasks:
        - Configure logging
        - Create the shared upstream client (unless one was injected)
        - Log configuration warnings

    Shutdown tasks:
        - Close the upstream client if this lifespan created it
    """
    settings: Settings = app.state.settings

    setup_logging(settings.LOG_LEVEL)
    logger = logging.getLogger("edge_proxy.main")

    owns_client = getattr(app.state, "upstream_client", None) is None
    if owns_client:
        app.state.upstream_client = create_upstream_client(settings)

    report = validate_configuration(settings)
    for warning in report["warnings"]:
        logger.warning(warning)

    logger.info(
        "Edge proxy started",
        extra={
            "upstream_url": settings.upstream_url_str,
            "allowed_origins": settings.allowed_origins_list,
            "max_payload_size": settings.MAX_PAYLOAD_SIZE,
        }
    )

    yield

    logger.info("Shutting down edge proxy")
    if owns_client:
        await app.state.upstream_client.aclose()
        app.state.upstream_client = None
    logger.info("Edge proxy shutdown complete")


# Create FastAPI application
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application instance with:
        - Lifespan management
        - Proxy and health routes
        - Exception handlers

    No CORSMiddleware is installed: the proxy route computes its own CORS
    headers from the validated origin.

    Args:
        settings: Settings to use; loaded from the environment when omitted

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Edge Proxy",
        description="CORS-enforcing proxy for the contribution form backend",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )
    app.state.settings = settings

    app.include_router(proxy_router, tags=["Upstream Proxy"])

    # Health check endpoint
    @app.get("/health", tags=["System"], response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(version=__version__)

    @app.exception_handler(StarletteHTTPException)
    async def method_not_allowed_handler(request: Request, exc: StarletteHTTPException):
        """
        Send router-level 405s on the proxy path through handle_request.

        The origin check then runs first and the response carries the same
        envelope, Allow header and CORS headers as any other rejection.
        """
        if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED and request.url.path == PROXY_PATH:
            return await handle_request(
                request,
                getattr(request.app.state, "upstream_client", None),
                request.app.state.settings,
            )
        return await http_exception_handler(request, exc)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns the generic error envelope, with CORS
        headers when the request comes from an allowed origin.
        """
        logger = logging.getLogger("edge_proxy.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        origin = request.headers.get("origin")
        headers = None
        if is_origin_allowed(origin, request.app.state.settings.allowed_origins_list):
            headers = build_cors_headers(origin)

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorEnvelope(error="Erreur interne du proxy").model_dump(),
            headers=headers,
        )

    return app


def main() -> None:
    """
    Direct execution entry point (console script ``edge-proxy``).
    """
    settings = get_settings()

    uvicorn.run(
        create_app(settings),
        host=settings.PROXY_HOST,
        port=settings.PROXY_PORT,
        log_level=settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    main()
