"""
Local Blob Storage - Meme images on disk, served by the gallery under /media
"""

import re
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

from loguru import logger

from config import settings
from meme_utils.exceptions import StorageError


MEDIA_ROUTE = "/media"


class LocalBlobStore:
    """Filesystem blob store implementing the BlobStore contract"""

    def __init__(self, media_dir: Path = None, base_url: str = None):
        """
        Initialize blob store

        Args:
            media_dir: Directory holding uploaded files
            base_url: Public URL prefix of the gallery (default: settings.PUBLIC_BASE_URL)
        """
        self.media_dir = Path(media_dir or settings.MEDIA_DIR)
        self.media_dir.mkdir(parents=True, exist_ok=True)
        self.base_url = (base_url or settings.PUBLIC_BASE_URL).rstrip("/")

        logger.info(f"Blob store initialized: {self.media_dir}")

    def _safe_name(self, name: str) -> str:
        name = Path(name).name
        name = re.sub(r"[^\w.\-]+", "_", name).strip("._")
        if not name:
            raise StorageError("Empty file name")
        return name

    def public_url(self, name: str) -> str:
        """Public URL of a stored file"""
        return f"{self.base_url}{MEDIA_ROUTE}/{self._safe_name(name)}"

    def name_from_url(self, public_url: str) -> str:
        """Stored file name for a public URL (last path segment)"""
        path = unquote(urlparse(public_url).path)
        return self._safe_name(path.rsplit("/", 1)[-1])

    async def upload(self, data: bytes, suggested_name: str, content_type: Optional[str] = None) -> str:
        """
        Store bytes under a name

        Existing names are never overwritten.

        Args:
            data: File bytes
            suggested_name: File name to store under
            content_type: MIME type (informational)

        Returns:
            Public URL

        Raises:
            StorageError: If the name is taken or the write fails
        """
        name = self._safe_name(suggested_name)
        target = self.media_dir / name

        try:
            with open(target, "xb") as f:
                f.write(data)
        except FileExistsError as e:
            raise StorageError(f"Upload failed: {name} already exists") from e
        except OSError as e:
            raise StorageError(f"Upload failed: {e}") from e

        logger.debug(f"Stored {name} ({len(data)} bytes, {content_type or 'unknown type'})")
        return self.public_url(name)

    async def delete(self, public_url: str) -> None:
        """
        Remove a stored file

        Raises:
            StorageError: If the file does not exist or cannot be removed
        """
        name = self.name_from_url(public_url)
        target = self.media_dir / name

        try:
            target.unlink()
        except FileNotFoundError as e:
            raise StorageError(f"Delete failed: {name} not found") from e
        except OSError as e:
            raise StorageError(f"Delete failed: {e}") from e

        logger.debug(f"Deleted {name}")

    def path_for(self, public_url: str) -> Path:
        """Local path backing a public URL"""
        return self.media_dir / self.name_from_url(public_url)
