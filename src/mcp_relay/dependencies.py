"""Dependency injection providers for FastAPI endpoints.

This module provides FastAPI dependency functions that are used across
multiple routers to inject common dependencies like settings and services.
"""

from functools import lru_cache

from fastapi import HTTPException, Request

from mcp_relay.config import RelaySettings
from mcp_relay.media import LocalMediaStore
from mcp_relay.ollama import OllamaClient
from mcp_relay.providers import ConnectionRegistry, ProviderConfigStore


@lru_cache
def get_settings() -> RelaySettings:
    """Get the application settings instance.

    This function is cached so that the same settings instance is reused
    across all requests. Settings are loaded from environment variables
    with the MCP_RELAY_ prefix.

    Returns:
        RelaySettings: The application configuration settings.
    """
    return RelaySettings()


def _service_unavailable(name: str) -> HTTPException:
    return HTTPException(
        status_code=503,
        detail={
            "error": {
                "code": "service_unavailable",
                "message": f"{name} not initialized",
                "details": {},
            }
        },
    )


def get_ollama_client(request: Request) -> OllamaClient:
    """Get the Ollama client from app state.

    Raises:
        HTTPException: If the Ollama client is not initialized (503 Service Unavailable).
    """
    if not hasattr(request.app.state, "ollama_client"):
        raise _service_unavailable("Ollama client")
    return request.app.state.ollama_client


def get_connection_registry(request: Request) -> ConnectionRegistry:
    """Get the process-wide connection registry from app state.

    The registry is created once in the application lifespan and shared by
    every request, so provider connections outlive individual requests.

    Raises:
        HTTPException: If the registry is not initialized (503 Service Unavailable).
    """
    if not hasattr(request.app.state, "connection_registry"):
        raise _service_unavailable("Connection registry")
    return request.app.state.connection_registry


def get_media_store(request: Request) -> LocalMediaStore:
    """Get the media store from app state.

    Raises:
        HTTPException: If the media store is not initialized (503 Service Unavailable).
    """
    if not hasattr(request.app.state, "media_store"):
        raise _service_unavailable("Media store")
    return request.app.state.media_store


def get_provider_store(request: Request) -> ProviderConfigStore:
    """Get a ProviderConfigStore for the configured providers file.

    Uses settings from app.state so that tests can supply isolated settings.
    """
    settings: RelaySettings = request.app.state.settings
    return ProviderConfigStore(path=settings.resolved_providers_file)
