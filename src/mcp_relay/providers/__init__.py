"""MCP provider configuration and connection management.

This package holds provider configs, their on-disk store, and the registry
of live provider connections.
"""

from mcp_relay.providers.errors import (
    AlreadyConnectedError,
    NotConnectedError,
    ProviderConfigError,
    ProviderConnectionError,
    ProviderError,
)
from mcp_relay.providers.registry import (
    ConnectionRegistry,
    ProviderConnection,
    dump_response,
)
from mcp_relay.providers.store import ProviderConfigStore
from mcp_relay.providers.types import ProviderConfig, TransportKind

__all__ = [
    "AlreadyConnectedError",
    "ConnectionRegistry",
    "NotConnectedError",
    "ProviderConfig",
    "ProviderConfigError",
    "ProviderConfigStore",
    "ProviderConnection",
    "ProviderConnectionError",
    "ProviderError",
    "TransportKind",
    "dump_response",
]
