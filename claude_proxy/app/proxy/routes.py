"""
Proxy Routes - Claude API Request Forwarding
============================================

This module implements the relay endpoint that forwards frontend requests
to the Anthropic Messages API with the server-held API key attached.

Security Model:
---------------
1. Browser callers are filtered by the origin gate before reaching here
2. The inbound body is opaque JSON and is not validated or transformed
3. Inbound headers are not forwarded; the proxy injects x-api-key and
   anthropic-version itself
4. The API key never appears in responses or logs

Endpoints:
----------
- POST /api/claude: Forward a Messages API request
"""

import json
import logging
from typing import Any

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from ..config import MAX_BODY_BYTES, Settings
from ..models import (
    ConfigErrorResponse,
    ForwardOutcome,
    InternalErrorResponse,
    RelaySuccess,
    UpstreamErrorResponse,
    UpstreamFailure,
)
from ..utils import declared_length, iso_timestamp
from .forwarder import forward_to_upstream

logger = logging.getLogger(__name__)

# Create router
proxy_router = APIRouter()

MISSING_KEY_MESSAGE = "Server configuration error: Claude API key missing."
INTERNAL_ERROR_MESSAGE = "Internal server error from Claude proxy"


# ============================================================================
# Dependencies
# ============================================================================

def get_app_settings(request: Request) -> Settings:
    """Settings captured by the application factory."""
    return request.app.state.settings


def get_upstream_client(request: Request) -> httpx.AsyncClient:
    """
    Dependency to get the upstream HTTP client from app state.

    Raises:
        HTTPException: If the client has not been created yet
    """
    client = getattr(request.app.state, "upstream_client", None)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Upstream client not available"
        )

    return client


# ============================================================================
# Body Handling
# ============================================================================

JSON_CONTENT_TYPE = "application/json"


def is_json_request(request: Request) -> bool:
    """True when the Content-Type media type is application/json."""
    content_type = request.headers.get("content-type", "")
    return content_type.split(";", 1)[0].strip().lower() == JSON_CONTENT_TYPE


def reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


async def read_json_body(request: Request, limit: int = MAX_BODY_BYTES) -> Any:
    """
    Read and parse the inbound JSON body, enforcing the size limit.

    Bodies that are not declared as application/json are not read and become
    an empty object, as does an empty body. Only objects and arrays are
    accepted at the top level; NaN and Infinity are rejected.

    The declared Content-Length is checked first so oversized uploads are
    refused without being read; chunked bodies are cut off once they pass
    the limit.

    Raises:
        HTTPException: 413 if the body is too large, 400 if it is not JSON
    """
    if not is_json_request(request):
        return {}

    length = declared_length(request.headers.get("content-length"))
    if length is not None and length > limit:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Request body exceeds {limit} bytes"
        )

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"Request body exceeds {limit} bytes"
            )

    text = bytes(body).strip()
    if not text:
        return {}

    if text[:1] not in (b"{", b"["):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON body: top-level value must be an object or array"
        )

    try:
        return json.loads(text, parse_constant=reject_constant)
    except (UnicodeDecodeError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid JSON body: {e}"
        )


# ============================================================================
# Outcome Mapping
# ============================================================================

def outcome_to_response(outcome: ForwardOutcome) -> JSONResponse:
    """Translate a forwarding outcome into the caller-facing response."""
    if isinstance(outcome, RelaySuccess):
        return JSONResponse(status_code=outcome.status_code, content=outcome.body)

    if isinstance(outcome, UpstreamFailure):
        envelope = UpstreamErrorResponse(
            error=f"Claude API responded with error: {outcome.reason}",
            details=outcome.body,
        )
        return JSONResponse(status_code=outcome.status_code, content=envelope.model_dump())

    envelope = InternalErrorResponse(
        error=INTERNAL_ERROR_MESSAGE,
        message=outcome.message,
        timestamp=iso_timestamp(outcome.occurred_at),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=envelope.model_dump()
    )


# ============================================================================
# Proxy Endpoints
# ============================================================================

@proxy_router.post("/api/claude")
async def proxy_claude(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    upstream_client: httpx.AsyncClient = Depends(get_upstream_client),
) -> JSONResponse:
    """
    Forward a Messages API request to Anthropic.

    Flow:
    1. Read the JSON body (10 MiB cap)
    2. Refuse with 500 if no API key is configured, before any network call
    3. POST the body upstream with x-api-key and anthropic-version
    4. Relay the upstream status and JSON, or an error envelope

    Returns:
        Upstream JSON body unchanged on success, otherwise an error envelope
    """
    payload = await read_json_body(request)

    logger.info(
        "Received Claude API request on proxy",
        extra={"origin": request.headers.get("origin")}
    )

    api_key = settings.api_key
    if not api_key:
        logger.error("Claude API key not configured in environment variables")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ConfigErrorResponse(error=MISSING_KEY_MESSAGE).model_dump()
        )

    outcome = await forward_to_upstream(upstream_client, api_key, payload)
    return outcome_to_response(outcome)
