"""Relocation of inline binary tool output into the media store.

MCP tool results may carry images as base64 strings. Feeding those back into
the conversation bloats every following model call, so they are uploaded and
replaced with URLs before the result is appended.
"""

import base64
import binascii
import logging
from typing import Any

from mcp_relay.media.store import MediaStore

logger = logging.getLogger(__name__)


def _is_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


async def _upload(store: MediaStore, payload: str, mime_type: str) -> str:
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Inline payload is not valid base64: {e}")
    return await store.store(data, mime_type)


async def relocate_media(result: Any, store: MediaStore) -> Any:
    """Upload inline images in a tool result and swap in their URLs.

    - ``{"type": "image", "data": <base64>}`` items keep their type; ``data``
      becomes the URL.
    - ``{"type": "resource", "resource": {"blob": <base64>}}`` items are
      re-tagged as images with ``data`` set to the URL and the blob removed.

    Upload failures are logged and leave the item as it was.

    Args:
        result: The JSON form of a tool result. Anything without a ``content``
            list passes through untouched.
        store: Where payloads are uploaded.

    Returns:
        The same result object, mutated in place.
    """
    if not isinstance(result, dict):
        return result
    content = result.get("content")
    if not isinstance(content, list):
        return result

    for item in content:
        if not isinstance(item, dict):
            continue

        if item.get("type") == "image":
            data = item.get("data")
            if not isinstance(data, str) or not data or _is_url(data):
                continue
            try:
                item["data"] = await _upload(
                    store, data, item.get("mimeType") or "image/png"
                )
            except Exception as e:
                logger.error(f"Failed to relocate image payload: {e}")

        elif item.get("type") == "resource":
            resource = item.get("resource")
            if not isinstance(resource, dict):
                continue
            blob = resource.get("blob")
            if not isinstance(blob, str) or not blob:
                continue
            mime_type = resource.get("mimeType") or "image/png"
            try:
                url = await _upload(store, blob, mime_type)
            except Exception as e:
                logger.error(f"Failed to relocate resource blob: {e}")
                continue
            item["type"] = "image"
            item["data"] = url
            item["mimeType"] = mime_type
            del resource["blob"]

    return result
