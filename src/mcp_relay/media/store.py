"""Durable storage for binary payloads returned by tools."""

import logging
import mimetypes
import re
import uuid
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[0-9a-f]{32}(\.[A-Za-z0-9]+)?$")


class MediaStore(Protocol):
    """Store/fetch contract for relocated media."""

    async def store(self, data: bytes, mime_type: str) -> str:
        """Persist ``data`` and return a URL it can be fetched from."""
        ...

    async def fetch(self, key: str) -> tuple[bytes, str]:
        """Return the bytes and MIME type stored under ``key``."""
        ...


class LocalMediaStore:
    """MediaStore writing files into a local directory.

    Stored files are served back by the media router, so the returned URLs
    point at ``{base_url}/api/v1/media/{key}``.
    """

    def __init__(self, media_dir: Path, base_url: str):
        self.media_dir = media_dir
        self.base_url = base_url.rstrip("/")
        self.media_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Media directory ready: {self.media_dir}")

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/api/v1/media/{key}"

    def path_for(self, key: str) -> Path:
        """Resolve a key to a file path.

        Raises:
            ValueError: If the key is not a key this store could have issued.
        """
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid media key: {key}")
        return self.media_dir / key

    async def store(self, data: bytes, mime_type: str) -> str:
        extension = mimetypes.guess_extension(mime_type) or ".bin"
        key = f"{uuid.uuid4().hex}{extension}"
        self.path_for(key).write_bytes(data)
        logger.info(f"Stored {len(data)} bytes of {mime_type} as {key}")
        return self.url_for(key)

    async def fetch(self, key: str) -> tuple[bytes, str]:
        """Read a stored payload.

        Raises:
            ValueError: If the key is malformed.
            FileNotFoundError: If nothing is stored under the key.
        """
        path = self.path_for(key)
        if not path.is_file():
            raise FileNotFoundError(f"Media '{key}' not found")
        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return path.read_bytes(), mime_type
