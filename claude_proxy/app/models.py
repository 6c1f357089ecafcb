"""
Data Models Module

This module defines Pydantic models for the proxy's own response payloads
and for the outcome of a single forwarding attempt.

Models are organized by functional area:
- Service models (status payload)
- Error envelopes (configuration, upstream and transport failures)
- Forward outcomes (tagged result returned by the forwarder)
"""

from datetime import datetime
from typing import Any, Literal, Union

from pydantic import BaseModel, Field


# ============================================================================
# Service Models
# ============================================================================

class StatusResponse(BaseModel):
    """Liveness payload served at GET /."""
    status: str = Field(..., description="Human readable service status")
    version: str = Field(..., description="Service version")
    timestamp: str = Field(..., description="ISO 8601 UTC time of the response")


# ============================================================================
# Error Envelopes
# ============================================================================

class ConfigErrorResponse(BaseModel):
    """Returned when the proxy cannot forward because it is misconfigured."""
    error: str


class UpstreamErrorResponse(BaseModel):
    """Returned with the upstream's own status code when it answers non-2xx."""
    error: str = Field(..., description="Summary including the upstream status text")
    details: str = Field(..., description="Raw upstream response body")


class InternalErrorResponse(BaseModel):
    """Returned with 500 when forwarding fails locally or on the network."""
    error: str
    message: str
    timestamp: str


# ============================================================================
# Forward Outcomes
# ============================================================================

class RelaySuccess(BaseModel):
    """Upstream answered 2xx with a JSON body."""
    kind: Literal["success"] = "success"
    status_code: int
    body: Any


class UpstreamFailure(BaseModel):
    """Upstream answered with a non-2xx status."""
    kind: Literal["upstream_error"] = "upstream_error"
    status_code: int
    reason: str = ""
    body: str = ""


class TransportFailure(BaseModel):
    """The call raised before a usable response was obtained."""
    kind: Literal["transport_error"] = "transport_error"
    message: str
    occurred_at: datetime


ForwardOutcome = Union[RelaySuccess, UpstreamFailure, TransportFailure]
