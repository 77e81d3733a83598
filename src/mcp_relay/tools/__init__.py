"""Provider tool declarations and model function-call translation.

This package maps provider tools onto Ollama function declarations and
resolves the model's function calls back onto provider tools.
"""

from mcp_relay.tools.codec import ToolNameError, ToolNameTable, ToolReference
from mcp_relay.tools.schema import (
    ResolvedCall,
    collect_declarations,
    resolve_function_call,
    to_function_declarations,
)

__all__ = [
    "ResolvedCall",
    "ToolNameError",
    "ToolNameTable",
    "ToolReference",
    "collect_declarations",
    "resolve_function_call",
    "to_function_declarations",
]
