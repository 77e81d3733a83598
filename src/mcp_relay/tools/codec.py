"""Encoding of (provider id, tool name) pairs into model-safe function names.

Ollama (and most function-calling APIs) only accept function names made of
``[A-Za-z0-9_]`` and at most 64 characters long. Provider ids and tool names
are free-form, so each pair is squeezed into the form::

    mcp_<8 hex digit hash of provider id>_<sanitized, truncated tool name>

Hashing and truncation are lossy. The ToolNameTable built during one
orchestration run is therefore the source of truth when decoding; the
structural split on ``_`` is only a best-effort fallback for names that were
not produced through the table.
"""

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 64
NAME_PREFIX = "mcp_"

_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_]")


class ToolNameError(ValueError):
    """Raised when a tool name cannot be encoded into a valid function name."""


@dataclass(frozen=True)
class ToolReference:
    """The original (provider id, tool name) pair behind an encoded name."""

    provider_id: str
    tool_name: str


def sanitize(value: str) -> str:
    """Replace every character outside [A-Za-z0-9_] with an underscore."""
    return _INVALID_CHARS.sub("_", value)


def provider_hash(provider_id: str) -> str:
    """Stable 32-bit rolling hash of a provider id, as 8 hex digits."""
    h = 0
    for char in provider_id:
        h = (h * 31 + ord(char)) & 0xFFFFFFFF
    return f"{h:08x}"


def encode_name(provider_id: str, tool_name: str) -> str:
    """Encode a provider/tool pair into a function name.

    Args:
        provider_id: Id of the provider exposing the tool.
        tool_name: Provider-local tool name.

    Returns:
        A string matching ``^[A-Za-z0-9_]{1,64}$``.

    Raises:
        ToolNameError: If no room is left for the tool name.
    """
    prefix = f"{NAME_PREFIX}{provider_hash(provider_id)}_"
    budget = MAX_NAME_LENGTH - len(prefix)
    if budget <= 0:
        raise ToolNameError(
            f"No room left for tool name '{tool_name}' after prefix '{prefix}'"
        )

    tail = sanitize(tool_name)[:budget] or "_"
    return prefix + tail


class ToolNameTable:
    """Bidirectional, run-scoped mapping between encoded names and tools.

    A table lives for exactly one orchestration run. Enumeration order of
    providers and tools may change between runs, so encoded names must never
    be resolved against another run's table.
    """

    def __init__(self) -> None:
        self._by_name: dict[str, ToolReference] = {}
        self._by_ref: dict[ToolReference, str] = {}

    def __len__(self) -> int:
        return len(self._by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def encode(self, provider_id: str, tool_name: str) -> str:
        """Encode a pair and register it in the table.

        Encoding the same pair twice returns the same name. If the encoded
        name is already bound to a different pair (hash collision combined
        with truncation), a numeric suffix is appended until the name is free.

        Raises:
            ToolNameError: If the pair cannot be encoded.
        """
        ref = ToolReference(provider_id, tool_name)
        existing = self._by_ref.get(ref)
        if existing is not None:
            return existing

        base = encode_name(provider_id, tool_name)
        name = base
        counter = 1
        while name in self._by_name:
            counter += 1
            suffix = f"_{counter}"
            name = base[: MAX_NAME_LENGTH - len(suffix)] + suffix

        if name != base:
            clash = self._by_name[base]
            logger.warning(
                f"Function name collision: '{base}' already maps to "
                f"{clash.provider_id}/{clash.tool_name}, using '{name}' for "
                f"{provider_id}/{tool_name}"
            )

        self._by_name[name] = ref
        self._by_ref[ref] = name
        return name

    def decode(self, name: str) -> ToolReference | None:
        """Resolve an encoded name back to its provider/tool pair.

        The table is consulted first. Names that were not registered fall back
        to a best-effort structural parse for foreign encodings of the form
        ``<provider>_<tool>``: the first segment is taken as the provider id
        and the remainder as the tool name.

        Returns:
            The ToolReference, or None if the name is unresolvable.
        """
        ref = self._by_name.get(name)
        if ref is not None:
            return ref

        provider_id, sep, tool_name = name.partition("_")
        if not sep or not provider_id or not tool_name:
            logger.debug(f"Unresolvable tool reference: {name}")
            return None

        logger.debug(
            f"Name '{name}' not in table, parsed structurally as "
            f"{provider_id}/{tool_name}"
        )
        return ToolReference(provider_id, tool_name)
