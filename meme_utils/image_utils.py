"""
Image utility functions for decoding, encoding and data URL handling
"""

import base64
import binascii
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from io import BytesIO
from urllib.parse import unquote_to_bytes
from typing import Tuple, Optional

from PIL import Image, ImageOps, UnidentifiedImageError


# MIME type -> Pillow format name
MIME_FORMATS = {
    "image/png": "PNG",
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/webp": "WEBP",
    "image/gif": "GIF",
}

# Short format name (optimizer option) -> MIME type
FORMAT_MIME_TYPES = {
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}

EXIF_ORIENTATION = 0x0112

_PIXEL_LIMIT_LOCK = threading.Lock()

MIME_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}


@dataclass(frozen=True)
class Blob:
    """Encoded image bytes with their MIME type"""
    data: bytes
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        return MIME_EXTENSIONS.get(self.mime_type, "bin")

    def to_data_url(self) -> str:
        return to_data_url(self.data, self.mime_type)


def mime_for_format(fmt: str) -> str:
    """
    Map an optimizer format name ('jpeg', 'png', 'webp') to a MIME type

    Unknown names map to JPEG.
    """
    return FORMAT_MIME_TYPES.get((fmt or "").lower(), "image/jpeg")


def pillow_format(mime_type: str) -> Optional[str]:
    """
    Get the Pillow encoder name for a MIME type, or None when this runtime
    cannot encode it
    """
    fmt = MIME_FORMATS.get((mime_type or "").lower())
    if fmt is None:
        return None

    Image.init()
    if fmt not in Image.SAVE:
        return None

    return fmt


def quality_to_pillow(quality: float) -> int:
    """
    Convert a 0..1 quality factor to Pillow's 1..100 scale

    Args:
        quality: Quality factor (0-1)

    Returns:
        Pillow quality value
    """
    return max(1, min(100, int(round(quality * 100))))


def to_data_url(data: bytes, mime_type: str) -> str:
    """Build a base64 data URL"""
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{payload}"


def parse_data_url(data_url: str) -> Tuple[str, bytes]:
    """
    Split a data URL into (mime_type, raw bytes)

    Raises:
        ValueError: If the string is not a well-formed data URL
    """
    if not data_url.startswith("data:") or "," not in data_url:
        raise ValueError("Not a data URL")

    header, payload = data_url[5:].split(",", 1)
    parts = header.split(";")
    mime_type = parts[0] or "text/plain"

    if "base64" in parts[1:]:
        try:
            return mime_type, base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 payload: {e}") from e

    return mime_type, unquote_to_bytes(payload)


def decode_image(data: bytes) -> Image.Image:
    """
    Decode image bytes into a fully loaded Pillow image

    EXIF orientation is applied so width/height match what a viewer shows.

    Raises:
        UnidentifiedImageError / OSError: If the bytes are not a decodable image
    """
    with Image.open(BytesIO(data)) as img:
        img.load()
        oriented = ImageOps.exif_transpose(img)
        # exif_transpose returns the same object when nothing changes
        if oriented is img:
            oriented = img.copy()

    return oriented


@contextmanager
def _without_pixel_limit():
    """Lift Pillow's decompression-bomb limit; callers must not load pixels"""
    with _PIXEL_LIMIT_LOCK:
        limit = Image.MAX_IMAGE_PIXELS
        Image.MAX_IMAGE_PIXELS = None
        try:
            yield
        finally:
            Image.MAX_IMAGE_PIXELS = limit


def read_dimensions(data: bytes) -> Tuple[int, int]:
    """
    Get image dimensions by reading only the header

    Huge declared sizes are reported as-is, since no pixels are decoded.
    EXIF orientations 5-8 rotate the image a quarter turn, so width and
    height are swapped to match decode_image().

    Returns:
        (width, height)
    """
    with _without_pixel_limit(), Image.open(BytesIO(data)) as img:
        width, height = img.size
        # PNG keeps EXIF after the pixel data; reading it there would decode
        if img.format == "PNG" and "exif" not in img.info:
            orientation = 1
        else:
            orientation = img.getexif().get(EXIF_ORIENTATION, 1)

    if orientation in (5, 6, 7, 8):
        return height, width
    return width, height


def flatten_alpha(image: Image.Image, background: Tuple[int, int, int] = (0, 0, 0)) -> Image.Image:
    """
    Composite an image with transparency onto a solid background

    Args:
        image: Source image (any mode)
        background: RGB fill for transparent pixels

    Returns:
        RGB image
    """
    if image.mode == "RGB":
        return image

    rgba = image.convert("RGBA")
    base = Image.new("RGB", rgba.size, background)
    base.paste(rgba, mask=rgba.getchannel("A"))
    return base


def to_drawable(image: Image.Image) -> Image.Image:
    """
    Bring a decoded image into a mode every encoder accepts

    CMYK, 16-bit and palette inputs are drawn into RGBA; the alpha channel
    is dropped again when it is fully opaque.

    Returns:
        RGBA image when any pixel is transparent, RGB otherwise
    """
    if image.mode in ("RGB", "RGBA"):
        return image

    rgba = image.convert("RGBA")
    if rgba.getchannel("A").getextrema() == (255, 255):
        return rgba.convert("RGB")
    return rgba


def is_image_error(error: BaseException) -> bool:
    """True for the exceptions Pillow raises on undecodable input"""
    return isinstance(error, (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError))
