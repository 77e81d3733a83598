"""Translation between provider tool declarations and Ollama function tools.

Provider tools carry an arbitrary JSON-schema-like ``inputSchema``. The model
only understands a small subset of JSON schema, so every schema is parsed
into a tagged tree of SchemaNode variants and rendered back out. The parse is
total: unknown or missing types become strings instead of failing.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

from mcp_relay.tools.codec import ToolNameError, ToolNameTable

if TYPE_CHECKING:
    from mcp_relay.providers.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


@dataclass
class StringNode:
    description: str | None = None
    enum: list[Any] | None = None


@dataclass
class NumberNode:
    description: str | None = None
    enum: list[Any] | None = None


@dataclass
class BooleanNode:
    description: str | None = None


@dataclass
class ArrayNode:
    items: "SchemaNode | None" = None
    description: str | None = None


@dataclass
class ObjectNode:
    properties: dict[str, "SchemaNode"] = field(default_factory=dict)
    required: list[str] = field(default_factory=list)
    description: str | None = None


SchemaNode = Union[StringNode, NumberNode, BooleanNode, ArrayNode, ObjectNode]


def parse_schema(raw: Any) -> SchemaNode:
    """Parse a provider schema fragment into a SchemaNode.

    Args:
        raw: A JSON-schema-like dict (anything else is treated as a string).

    Returns:
        The parsed node.
    """
    if not isinstance(raw, dict):
        return StringNode()

    description = raw.get("description")
    if not isinstance(description, str):
        description = None
    enum = raw.get("enum") if isinstance(raw.get("enum"), list) else None

    kind = raw.get("type")
    if isinstance(kind, list):
        # ["string", "null"] style unions: the first non-null type wins
        kind = next((k for k in kind if k != "null"), None)

    if kind == "string":
        return StringNode(description=description, enum=enum)
    if kind in ("number", "integer"):
        return NumberNode(description=description, enum=enum)
    if kind == "boolean":
        return BooleanNode(description=description)
    if kind == "array":
        items = raw.get("items")
        return ArrayNode(
            items=parse_schema(items) if items is not None else None,
            description=description,
        )
    if kind == "object":
        properties = raw.get("properties") or {}
        required = raw.get("required") or []
        return ObjectNode(
            properties={
                str(key): parse_schema(value)
                for key, value in properties.items()
            }
            if isinstance(properties, dict)
            else {},
            required=[r for r in required if isinstance(r, str)]
            if isinstance(required, list)
            else [],
            description=description,
        )

    return StringNode(description=description, enum=enum)


def render_schema(node: SchemaNode) -> dict[str, Any]:
    """Render a SchemaNode as a function-calling parameter schema."""
    if isinstance(node, StringNode):
        out: dict[str, Any] = {"type": "string"}
    elif isinstance(node, NumberNode):
        out = {"type": "number"}
    elif isinstance(node, BooleanNode):
        out = {"type": "boolean"}
    elif isinstance(node, ArrayNode):
        out = {"type": "array"}
        if node.items is not None:
            out["items"] = render_schema(node.items)
    else:
        out = {
            "type": "object",
            "properties": {
                key: render_schema(value) for key, value in node.properties.items()
            },
        }
        required = [key for key in node.required if key in node.properties]
        if required:
            out["required"] = required

    if node.description:
        out["description"] = node.description
    enum = getattr(node, "enum", None)
    if enum:
        out["enum"] = enum
    return out


def _tool_field(tool: Any, name: str) -> Any:
    """Read a field from an mcp Tool object or a plain dict."""
    if isinstance(tool, dict):
        return tool.get(name)
    return getattr(tool, name, None)


def to_function_declarations(
    provider_id: str,
    tools: list[Any],
    table: ToolNameTable,
) -> list[dict[str, Any]]:
    """Convert one provider's tools into Ollama function tool declarations.

    Encoded names are registered in ``table`` so that function calls coming
    back from the model can be resolved with resolve_function_call().

    Args:
        provider_id: Id of the provider the tools belong to.
        tools: Tool descriptors (mcp ``Tool`` objects or equivalent dicts).
        table: The run-scoped name table.

    Returns:
        List of ``{"type": "function", "function": {...}}`` declarations.
    """
    declarations = []

    for tool in tools:
        tool_name = _tool_field(tool, "name")
        if not tool_name:
            logger.warning(f"Skipping unnamed tool from provider {provider_id}")
            continue

        try:
            encoded = table.encode(provider_id, tool_name)
        except ToolNameError as e:
            logger.warning(f"Skipping tool {provider_id}/{tool_name}: {e}")
            continue

        parameters = parse_schema(_tool_field(tool, "inputSchema"))
        if not isinstance(parameters, ObjectNode):
            parameters = ObjectNode()

        declarations.append(
            {
                "type": "function",
                "function": {
                    "name": encoded,
                    "description": _tool_field(tool, "description")
                    or f"Tool: {tool_name}",
                    "parameters": render_schema(parameters),
                },
            }
        )

    return declarations


async def collect_declarations(
    registry: "ConnectionRegistry",
    enabled: set[str] | None = None,
) -> tuple[list[dict[str, Any]], ToolNameTable]:
    """Gather function declarations from every connected provider.

    Tools are re-fetched on every call. A provider whose tool listing fails is
    logged and left out rather than failing the whole run.

    Args:
        registry: The connection registry to enumerate.
        enabled: Optional set of provider ids to restrict to.

    Returns:
        Tuple of (declarations, name table for this run).
    """
    table = ToolNameTable()
    declarations: list[dict[str, Any]] = []

    for config in registry.list_connected():
        if enabled is not None and config.id not in enabled:
            continue

        try:
            result = await registry.list_tools(config.id)
        except Exception as e:
            logger.error(f"Failed to load tools from {config.name}: {e}")
            continue

        tools = _tool_field(result, "tools") or []
        declarations.extend(to_function_declarations(config.id, tools, table))

    logger.debug(f"Collected {len(declarations)} function declarations")
    return declarations, table


@dataclass(frozen=True)
class ResolvedCall:
    """A model function call mapped back onto a provider tool."""

    provider_id: str
    tool_name: str
    arguments: dict[str, Any]


def resolve_function_call(
    call: dict[str, Any],
    table: ToolNameTable,
) -> ResolvedCall | None:
    """Map a model function call back to (provider id, tool name, arguments).

    Args:
        call: ``{"name": ..., "arguments": ...}`` as produced by the model.
        table: The name table of the current run.

    Returns:
        The ResolvedCall, or None if the name cannot be resolved.
    """
    name = call.get("name")
    if not isinstance(name, str) or not name:
        return None

    ref = table.decode(name)
    if ref is None:
        return None

    arguments = call.get("arguments")
    return ResolvedCall(
        provider_id=ref.provider_id,
        tool_name=ref.tool_name,
        arguments=dict(arguments) if isinstance(arguments, dict) else {},
    )
