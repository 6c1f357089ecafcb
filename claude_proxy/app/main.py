"""
FastAPI Application Factory
===========================

Entry point for the Claude proxy that sits between the MTG Scanner frontend
and the Anthropic Messages API.

Architecture:
    Browser / CLI → Claude Proxy (this service) → api.anthropic.com/v1/messages

Routes:
    - GET  /            : Status payload (liveness)
    - POST /api/claude  : Forward a Messages API request with the server key
    - OPTIONS *         : CORS preflight, answered by the origin gate

Environment Variables:
    - CLAUDE_API_KEY or ANTHROPIC_API_KEY: Anthropic key (first one set wins)
    - PORT: Listening port (default: 8080)
    - HOST: Bind address (default: 0.0.0.0)
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn claude_proxy.app.main:create_app --factory --reload --port 8080

    Production:
        python -m claude_proxy.app.main
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from . import __version__
from .config import (
    ALLOWED_METHODS,
    ALLOWED_ORIGINS,
    SERVICE_NAME,
    Settings,
    get_settings,
    validate_configuration,
)
from .cors import OriginGateMiddleware, error_response_headers
from .models import InternalErrorResponse, StatusResponse
from .proxy import proxy_router
from .proxy.routes import INTERNAL_ERROR_MESSAGE
from .utils import iso_timestamp


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


def build_upstream_client() -> httpx.AsyncClient:
    # No timeout: a slow upstream holds the caller's request open.
    return httpx.AsyncClient(timeout=None)


# Create FastAPI application
def create_app(
    settings: Optional[Settings] = None,
    upstream_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application instance with:
        - Lifespan management (shared upstream HTTP client)
        - Origin gate (CORS) middleware
        - Route handlers
        - Exception handlers

    Args:
        settings: Configuration to use; loaded from the environment if omitted
        upstream_client: HTTP client to forward with; created and owned by the
            lifespan if omitted

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Startup: configure logging, report configuration, open the client.
        Shutdown: close the client if this app created it.
        """
        setup_logging(settings.LOG_LEVEL)
        logger = logging.getLogger("claude_proxy.main")

        report = validate_configuration(settings)
        for error in report["errors"]:
            logger.error(f"Configuration error: {error}")
        for warning in report["warnings"]:
            logger.warning(f"Configuration warning: {warning}")

        owns_client = app.state.upstream_client is None
        if owns_client:
            app.state.upstream_client = build_upstream_client()

        logger.info(
            f"{SERVICE_NAME} running on port {settings.PORT}",
            extra={
                "version": __version__,
                "api_key_present": settings.has_api_key,
                "allowed_origins": report["allowed_origins"],
            }
        )

        yield

        logger.info("Shutting down Claude proxy")
        if owns_client:
            await app.state.upstream_client.aclose()
            app.state.upstream_client = None

    app = FastAPI(
        title=SERVICE_NAME,
        description="Relay that injects the Anthropic API key for the MTG Scanner frontend",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.upstream_client = upstream_client

    # Configure CORS
    app.add_middleware(
        OriginGateMiddleware,
        allowed_origins=ALLOWED_ORIGINS,
        allowed_methods=ALLOWED_METHODS,
    )

    # Proxy router: Forwards requests to the Anthropic API
    app.include_router(proxy_router, tags=["Claude Proxy"])

    # Root endpoint
    @app.get("/", tags=["System"], response_model=StatusResponse)
    async def root() -> StatusResponse:
        """
        Status endpoint.

        Answers regardless of whether an API key is configured.
        """
        return StatusResponse(
            status=f"{SERVICE_NAME} is running",
            version=__version__,
            timestamp=iso_timestamp(),
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns the same envelope as a failed forward.
        """
        logger = logging.getLogger("claude_proxy.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "origin": request.headers.get("origin"),
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        envelope = InternalErrorResponse(
            error=INTERNAL_ERROR_MESSAGE,
            message=str(exc),
            timestamp=iso_timestamp(),
        )
        return JSONResponse(
            status_code=500,
            content=envelope.model_dump(),
            headers=error_response_headers(request.headers.get("origin"), ALLOWED_ORIGINS),
        )

    return app


def main() -> None:
    """Run the proxy with uvicorn on the configured host and port."""
    settings = get_settings()

    uvicorn.run(
        "claude_proxy.app.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    main()
