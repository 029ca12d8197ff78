"""HTTP and WebSocket control API."""

from funding_arbitrage.api.server import create_app


__all__ = ["create_app"]
