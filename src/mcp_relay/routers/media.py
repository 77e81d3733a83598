"""Media endpoint serving payloads relocated out of tool results."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from mcp_relay.dependencies import get_media_store
from mcp_relay.media import MediaStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/media", tags=["media"])


@router.get("/{key}")
async def get_media(
    key: str,
    media_store: MediaStore = Depends(get_media_store),
) -> Response:
    """Return a stored media payload.

    Raises:
        HTTPException: 400 for malformed keys, 404 if nothing is stored under the key
    """
    try:
        data, mime_type = await media_store.fetch(key)
    except ValueError as e:
        raise HTTPException(
            status_code=400,
            detail={"error": {"code": "invalid_media_key", "message": str(e), "details": {}}},
        )
    except FileNotFoundError:
        raise HTTPException(
            status_code=404,
            detail={
                "error": {
                    "code": "media_not_found",
                    "message": f"Media {key} not found",
                    "details": {"key": key},
                }
            },
        )
    return Response(content=data, media_type=mime_type)
