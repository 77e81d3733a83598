"""Agent loop orchestrating model calls and provider tool executions."""

from mcp_relay.agent.loop import AgentLoop, AgentState
from mcp_relay.agent.types import (
    ConversationTurn,
    FunctionCall,
    FunctionResult,
    validate_conversation,
)

__all__ = [
    "AgentLoop",
    "AgentState",
    "ConversationTurn",
    "FunctionCall",
    "FunctionResult",
    "validate_conversation",
]
