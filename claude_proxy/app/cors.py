"""
Origin Gate
===========

CORS handling for the proxy, built on Starlette's CORSMiddleware.

Starlette only withholds CORS headers from disallowed origins and still runs
the request. The proxy must not spend the API key on behalf of a foreign
site, so this gate rejects such requests outright before routing.

Rules:
    - No Origin header: admitted (curl, server-to-server, mobile apps)
    - Origin on the allow-list: admitted, CORS headers added
    - Any other Origin: 403, logged with the allow-list
    - Every admitted OPTIONS request is answered here with 204 and no body,
      whatever method it asks for
"""

import logging
from typing import Dict, Iterable, Optional, Sequence

from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)

REJECTION_MESSAGE = "Not allowed by CORS"


class OriginGateMiddleware(CORSMiddleware):
    """
    CORSMiddleware that blocks unknown origins instead of passing them through.

    Attributes:
        allowed_origins: Immutable allow-list used for the exact-match check
    """

    def __init__(
        self,
        app: ASGIApp,
        allowed_origins: Iterable[str] = (),
        allowed_methods: Sequence[str] = ("GET",),
        max_age: int = 600,
    ) -> None:
        self.allowed_origins = frozenset(allowed_origins)
        super().__init__(
            app,
            allow_origins=sorted(self.allowed_origins),
            allow_methods=list(allowed_methods),
            allow_headers=["*"],
            allow_credentials=True,
            max_age=max_age,
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        origin = headers.get("origin")

        if origin and origin not in self.allowed_origins:
            logger.warning(
                f"CORS: Blocking request from unauthorized origin: {origin}. "
                f"Allowed origins: {', '.join(sorted(self.allowed_origins))}",
                extra={"origin": origin, "path": scope.get("path")},
            )
            response = PlainTextResponse(REJECTION_MESSAGE, status_code=403)
            await response(scope, receive, send)
            return

        if scope["method"] == "OPTIONS":
            # Browsers enforce Allow-Methods themselves; never route OPTIONS.
            response = Response(
                status_code=204,
                headers=self.options_headers(origin, headers.get("access-control-request-headers")),
            )
            await response(scope, receive, send)
            return

        await super().__call__(scope, receive, send)

    def options_headers(
        self,
        origin: Optional[str] = None,
        requested_headers: Optional[str] = None,
    ) -> Dict[str, str]:
        """CORS headers for a 204 OPTIONS answer, echoing the requested headers."""
        headers = dict(self.preflight_headers)
        if origin:
            headers["Access-Control-Allow-Origin"] = origin
        if requested_headers:
            headers["Access-Control-Allow-Headers"] = requested_headers
        return headers


def error_response_headers(origin: Optional[str], allowed_origins: Iterable[str]) -> Dict[str, str]:
    """
    CORS headers for responses built outside the gate.

    Starlette's server-error handler sits outside every user middleware, so
    its 500 would otherwise reach an allowed browser caller unreadable.
    """
    if not origin or origin not in allowed_origins:
        return {}
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Credentials": "true",
        "Vary": "Origin",
    }
