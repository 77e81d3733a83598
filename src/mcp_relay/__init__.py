"""mcp-relay: chat server delegating tool use to MCP providers.

This package provides a FastAPI server that keeps live connections to MCP
tool providers and lets an Ollama model call their tools turn by turn,
streaming every step to the client.
"""

from mcp_relay.app import create_app

__version__ = "0.1.0"

__all__ = ["create_app", "__version__"]
