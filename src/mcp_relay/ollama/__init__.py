"""Ollama client wrapper and integration layer.

This package provides the async client wrapper used for every model call.
"""

from mcp_relay.ollama.client import OllamaClient

__all__ = ["OllamaClient"]
