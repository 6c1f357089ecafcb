"""
Claude Proxy Application
========================

Relay between the MTG Scanner frontend and the Anthropic Messages API.

Modules:
    - config:  Settings and compiled-in constants
    - cors:    Origin gate middleware
    - models:  Response envelopes and forward outcomes
    - proxy:   /api/claude route and upstream forwarder
    - main:    Application factory and entry point
"""

__version__ = "1.0.2"
