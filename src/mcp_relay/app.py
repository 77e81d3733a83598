"""FastAPI application factory and lifespan management.

This module contains the create_app() factory function that creates and configures
the FastAPI application instance, including lifespan management for startup/shutdown
and router registration.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mcp_relay.config import RelaySettings
from mcp_relay.media import LocalMediaStore
from mcp_relay.ollama import OllamaClient
from mcp_relay.providers import ConnectionRegistry
from mcp_relay.routers import chat, health, media, providers

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for FastAPI application.

    Long-lived services (the Ollama client, the provider connection registry
    and the media store) are created once at startup and stored in app.state
    for reuse across all requests. Provider connections are closed on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        None: Control is yielded while the app is running.
    """
    settings: RelaySettings = app.state.settings

    app.state.ollama_client = OllamaClient(host=settings.ollama_host)
    logger.info(f"Initialized Ollama client with host: {settings.ollama_host}")

    connected = await app.state.ollama_client.check_connection()
    if connected:
        logger.info("Successfully connected to Ollama")
    else:
        logger.warning("Could not connect to Ollama - check if server is running")

    app.state.connection_registry = ConnectionRegistry(
        connect_timeout=settings.provider_connect_timeout
    )
    app.state.media_store = LocalMediaStore(
        media_dir=settings.resolved_media_dir,
        base_url=settings.public_base_url,
    )

    yield

    # Shutdown: close provider connections, then the model client
    if hasattr(app.state, "connection_registry"):
        await app.state.connection_registry.disconnect_all()
        logger.info("Provider connections closed")

    if hasattr(app.state, "ollama_client"):
        await app.state.ollama_client.close()
        logger.info("Ollama client closed")


def create_app(settings: RelaySettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional RelaySettings instance. If not provided,
                  settings will be loaded from environment variables.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        from mcp_relay.dependencies import get_settings

        settings = get_settings()

    app = FastAPI(
        title="mcp-relay",
        description="Chat server delegating tool use to MCP providers via Ollama",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings

    # Note: FastAPI's type hints for add_middleware are overly strict
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(chat.router)
    app.include_router(providers.router)
    app.include_router(media.router)

    return app
