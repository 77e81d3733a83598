"""API routers for mcp-relay.

This package contains all FastAPI router modules that define the API endpoints.
"""

from mcp_relay.routers import chat, health, media, providers

__all__ = ["chat", "health", "media", "providers"]
