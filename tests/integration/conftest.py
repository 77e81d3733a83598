"""Pytest configuration for integration tests.

This module provides integration-test-specific fixtures that replace the
Ollama client and the provider connection registry before the app starts,
so API tests never touch a real model server or spawn real providers.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mcp_relay.providers import ProviderConfig


@pytest.fixture(autouse=True)
def mock_ollama_client():
    """Mock OllamaClient for all integration tests.

    This fixture patches the OllamaClient class before the app is created,
    ensuring the lifespan uses our mock instead of creating a real client.
    """
    with patch("mcp_relay.app.OllamaClient") as mock_client_class:
        mock_instance = AsyncMock()
        mock_instance.host = "http://localhost:11434"
        mock_instance.check_connection.return_value = True
        mock_client_class.return_value = mock_instance
        yield mock_instance


@pytest.fixture(autouse=True)
def mock_registry():
    """Mock ConnectionRegistry for all integration tests.

    list_connected() is synchronous on the real registry, so the mock is a
    MagicMock with explicit AsyncMock coroutine methods.
    """
    with patch("mcp_relay.app.ConnectionRegistry") as mock_registry_class:
        mock_instance = MagicMock()
        mock_instance.list_connected.return_value = []
        for name in (
            "connect",
            "disconnect",
            "disconnect_all",
            "list_tools",
            "list_resources",
            "list_prompts",
            "call_tool",
            "read_resource",
            "get_prompt",
        ):
            setattr(mock_instance, name, AsyncMock())
        mock_registry_class.return_value = mock_instance
        yield mock_instance


@pytest.fixture
def echo_provider():
    """Config of a stdio provider exposing a single echo tool."""
    return ProviderConfig(
        id="providerA",
        name="Provider A",
        transport="stdio",
        command="echo-server",
    )


def _parse_sse_data(text: str) -> list:
    """Parse the data records of an SSE response body.

    JSON records are decoded; the [DONE] sentinel is kept as a string.
    """
    records = []
    normalized_text = text.replace("\r\n", "\n")
    for block in normalized_text.strip().split("\n\n"):
        for part in block.split("\n"):
            if part.startswith("data:"):
                data = part.split(":", 1)[1].strip()
                records.append(data if data == "[DONE]" else json.loads(data))
    return records


@pytest.fixture
def parse_sse():
    """Parser turning an SSE response body into its list of data records."""
    return _parse_sse_data
