"""Durable storage and relocation of binary tool output."""

from mcp_relay.media.relocation import relocate_media
from mcp_relay.media.store import LocalMediaStore, MediaStore

__all__ = ["LocalMediaStore", "MediaStore", "relocate_media"]
