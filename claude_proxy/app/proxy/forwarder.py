"""
Upstream Forwarder
==================

Credential injection and the single outbound call to the Anthropic API.

The forwarder never raises for upstream or network problems. Each attempt
ends in exactly one outcome (see models.ForwardOutcome) and the route layer
decides how to present it:

    RelaySuccess      upstream 2xx, JSON body parsed
    UpstreamFailure   upstream non-2xx, body kept as raw text
    TransportFailure  anything that raised (DNS, reset, malformed JSON, ...)

There are no retries and no timeout beyond what the client was built with.
"""

import json
import logging
from typing import Any, Dict

import httpx

from ..config import (
    UPSTREAM_API_VERSION,
    UPSTREAM_KEY_HEADER,
    UPSTREAM_URL,
    UPSTREAM_VERSION_HEADER,
)
from ..models import ForwardOutcome, RelaySuccess, TransportFailure, UpstreamFailure
from ..utils import utc_now

logger = logging.getLogger(__name__)


class MissingCredentialError(RuntimeError):
    """Raised when an outbound call is attempted without an API key."""


def build_upstream_headers(api_key: str) -> Dict[str, str]:
    """
    Build the outbound header set.

    Inbound headers are never copied; the client's own credentials (if any)
    stay on this side of the proxy.

    Raises:
        MissingCredentialError: If api_key is empty
    """
    if not api_key:
        raise MissingCredentialError("Claude API key missing")

    return {
        "Content-Type": "application/json",
        UPSTREAM_KEY_HEADER: api_key,
        UPSTREAM_VERSION_HEADER: UPSTREAM_API_VERSION,
    }


def encode_payload(payload: Any) -> bytes:
    """Re-serialize the inbound JSON value for the outbound body."""
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


async def forward_to_upstream(
    client: httpx.AsyncClient,
    api_key: str,
    payload: Any,
    url: str = UPSTREAM_URL,
) -> ForwardOutcome:
    """
    POST payload to the upstream with the injected credential.

    Args:
        client: Shared HTTP client
        api_key: Secret sent as the x-api-key header
        payload: Parsed inbound JSON, forwarded unchanged
        url: Upstream endpoint

    Returns:
        The outcome of the single attempt.

    Raises:
        MissingCredentialError: If api_key is empty. Checked before any I/O.
    """
    headers = build_upstream_headers(api_key)

    try:
        response = await client.post(url, content=encode_payload(payload), headers=headers)

        if not response.is_success:
            error_body = response.text
            logger.error(
                f"Claude API error ({response.status_code} {response.reason_phrase}): {error_body}",
                extra={"status_code": response.status_code},
            )
            return UpstreamFailure(
                status_code=response.status_code,
                reason=response.reason_phrase,
                body=error_body,
            )

        data = response.json()

    except Exception as e:
        logger.error(
            f"Claude proxy error caught: {e}",
            extra={"exception_type": type(e).__name__},
        )
        return TransportFailure(message=str(e), occurred_at=utc_now())

    logger.info("Claude API response successfully forwarded")
    return RelaySuccess(status_code=response.status_code, body=data)
