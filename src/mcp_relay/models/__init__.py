"""Pydantic models for API request and response schemas.

This package contains all Pydantic models used for validating and
serializing API requests and responses across all endpoints.
"""

from mcp_relay.models.chat import (
    ChatRequest,
    ErrorEvent,
    FunctionCallEvent,
    FunctionCallInfo,
    FunctionResultEvent,
    HistoryTurn,
    StreamEvent,
    TextEvent,
)
from mcp_relay.models.health import HealthResponse

__all__ = [
    "ChatRequest",
    "ErrorEvent",
    "FunctionCallEvent",
    "FunctionCallInfo",
    "FunctionResultEvent",
    "HealthResponse",
    "HistoryTurn",
    "StreamEvent",
    "TextEvent",
]
