"""
Exporter Module - Encode rendered memes and hand them to files or the clipboard
"""

import asyncio
import re
import shutil
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional, Awaitable

from loguru import logger
from PIL import Image

from config import settings
from meme_utils.exceptions import EncodeError, ClipboardError
from meme_utils.image_utils import Blob, flatten_alpha, pillow_format, quality_to_pillow

if TYPE_CHECKING:
    from meme_modules.compositor import RenderedRaster


DEFAULT_MIME_TYPE = "image/png"
DEFAULT_QUALITY = 0.9


def encode_surface(
    surface: Image.Image,
    mime_type: str = DEFAULT_MIME_TYPE,
    quality: float = DEFAULT_QUALITY
) -> Blob:
    """
    Encode a drawable surface

    MIME types this runtime cannot encode fall back to PNG. Quality is ignored
    for PNG; JPEG output has transparency flattened onto black.

    Args:
        surface: Image to encode
        mime_type: Requested MIME type
        quality: Quality factor (0-1) for lossy formats

    Returns:
        Blob with the encoded bytes and the MIME type actually produced

    Raises:
        EncodeError: If the encoder fails or produces no data
    """
    fmt = pillow_format(mime_type)
    if fmt is None or fmt == "GIF":
        fmt, mime_type = "PNG", DEFAULT_MIME_TYPE
    elif fmt == "JPEG":
        mime_type = "image/jpeg"

    save_kwargs = {}
    image = surface
    if fmt == "JPEG":
        image = flatten_alpha(surface)
        save_kwargs["quality"] = quality_to_pillow(quality)
    elif fmt == "WEBP":
        save_kwargs["quality"] = quality_to_pillow(quality)

    buffer = BytesIO()
    try:
        image.save(buffer, format=fmt, **save_kwargs)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(mime_type, str(e)) from e

    data = buffer.getvalue()
    if not data:
        raise EncodeError(mime_type, "encoder returned no data")

    return Blob(data=data, mime_type=mime_type)


async def export(
    raster: "RenderedRaster",
    mime_type: str = DEFAULT_MIME_TYPE,
    quality: float = DEFAULT_QUALITY
) -> Blob:
    """
    Encode a rendered raster to a Blob

    Raises:
        EncodeError: If encoding fails (not retried)
    """
    return raster.blob(mime_type, quality)


def export_data_url(
    raster: "RenderedRaster",
    mime_type: str = DEFAULT_MIME_TYPE,
    quality: float = DEFAULT_QUALITY
) -> str:
    """
    Encode a rendered raster to a base64 data URL

    Raises:
        EncodeError: If encoding fails
    """
    return raster.data_url(mime_type, quality)


class SystemClipboard:
    """
    Writes PNG images to the desktop clipboard through a command line tool
    """

    COMMANDS: List[List[str]] = [
        ["wl-copy", "--type", "image/png"],
        ["xclip", "-selection", "clipboard", "-t", "image/png", "-i"],
    ]

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    def _find_command(self) -> Optional[List[str]]:
        for command in self.COMMANDS:
            if shutil.which(command[0]):
                return command
        return None

    async def __call__(self, data: bytes, mime_type: str) -> None:
        command = self._find_command()
        if command is None:
            raise ClipboardError("No clipboard tool found (install wl-clipboard or xclip)")

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await asyncio.wait_for(process.communicate(data), timeout=self.timeout)
        except (OSError, asyncio.TimeoutError) as e:
            raise ClipboardError(f"Clipboard write failed: {e or type(e).__name__}") from e

        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip()
            raise ClipboardError(f"{command[0]} exited with {process.returncode}: {detail}")


ClipboardWriter = Callable[[bytes, str], Awaitable[None]]


class Exporter:
    """
    Saves rendered memes as files and copies them to the clipboard
    """

    def __init__(self, output_dir: Path = None, clipboard: ClipboardWriter = None):
        """
        Initialize Exporter

        Args:
            output_dir: Download directory (default: workspace/downloads)
            clipboard: Async callable receiving (bytes, mime_type)
        """
        self.output_dir = Path(output_dir or settings.DOWNLOADS_DIR)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.clipboard = clipboard or SystemClipboard()

        logger.debug(f"Exporter initialized with output dir: {self.output_dir}")

    def generate_filename(self, extension: str = "png", now: datetime = None) -> str:
        """
        Generate filename following pattern: meme-<ISO timestamp>.png

        ':' and '.' in the timestamp are replaced with '-' so the name is
        valid on every filesystem.
        """
        now = now or datetime.now()
        timestamp = re.sub(r"[:.]", "-", now.isoformat())
        return f"meme-{timestamp}.{extension}"

    def _clean_filename(self, filename: str) -> str:
        """
        Clean a user-supplied filename for use on disk

        Args:
            filename: Original filename

        Returns:
            Cleaned filename without directory components
        """
        filename = Path(filename.strip()).name

        # Keep letters, numbers, dots, dashes and underscores
        filename = re.sub(r"[^\w.\-]+", "_", filename)
        filename = filename.strip("._") or "meme"

        max_length = 100
        if len(filename) > max_length:
            stem, dot, suffix = filename.rpartition(".")
            if dot and len(suffix) <= 5:
                filename = f"{stem[:max_length - len(suffix) - 1]}.{suffix}"
            else:
                filename = filename[:max_length]

        return filename

    async def download(
        self,
        raster: "RenderedRaster",
        filename: Optional[str] = None,
        mime_type: str = DEFAULT_MIME_TYPE,
        quality: float = DEFAULT_QUALITY
    ) -> Path:
        """
        Save a rendered meme into the download directory

        The raster is encoded before anything touches the filesystem.

        Args:
            raster: Rendered meme
            filename: Optional filename (default: meme-<timestamp>.png)
            mime_type: Output MIME type
            quality: Quality factor for lossy formats

        Returns:
            Path to the saved file

        Raises:
            EncodeError: If encoding fails (no file is written)
        """
        blob = await export(raster, mime_type, quality)

        if filename:
            filename = self._clean_filename(filename)
        else:
            filename = self.generate_filename(blob.extension)

        output_path = self.output_dir / filename
        output_path.write_bytes(blob.data)
        logger.info(f"Saved meme: {output_path} ({blob.size} bytes)")

        return output_path

    async def copy_to_system_clipboard(self, raster: "RenderedRaster") -> None:
        """
        Copy a rendered meme to the clipboard as PNG

        Raises:
            EncodeError: If encoding fails (clipboard untouched)
            ClipboardError: If the clipboard write fails
        """
        blob = await export(raster, DEFAULT_MIME_TYPE, DEFAULT_QUALITY)
        await self.clipboard(blob.data, blob.mime_type)
        logger.info(f"Copied meme to clipboard ({blob.size} bytes)")
