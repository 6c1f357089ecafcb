"""
Proxy Package
=============

This package implements the relay endpoint that forwards frontend requests
to the Anthropic Messages API.

Main Components:
----------------
- routes.py: FastAPI router with the /api/claude endpoint
- forwarder.py: Credential injection and the outbound call

Usage:
------
    from claude_proxy.app.proxy import proxy_router
    app.include_router(proxy_router)
"""

from .routes import proxy_router

__all__ = ["proxy_router"]
