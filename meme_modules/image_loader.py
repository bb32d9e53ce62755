"""
Image Loader - Fetch and decode source images from URLs, data URLs, paths or bytes
"""

from contextlib import contextmanager
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Tuple, Union

import httpx
from loguru import logger
from PIL import Image

from config import settings
from meme_utils.exceptions import ImageLoadError
from meme_utils.image_utils import decode_image, parse_data_url, read_dimensions, is_image_error


ImageRef = Union[str, Path, bytes, bytearray, BinaryIO]


def describe_ref(ref: ImageRef) -> str:
    """Short printable form of an image reference for errors and logs"""
    if isinstance(ref, (bytes, bytearray)):
        return f"<{len(ref)} bytes>"
    if isinstance(ref, Path):
        return str(ref)
    if isinstance(ref, str):
        if ref.startswith("data:"):
            return f"{ref[:30]}..."
        return ref
    return f"<{type(ref).__name__}>"


def _is_remote(ref: ImageRef) -> bool:
    return isinstance(ref, str) and ref.lower().startswith(("http://", "https://"))


@contextmanager
def open_source(ref: ImageRef) -> Iterator[BinaryIO]:
    """
    Acquire a readable binary stream for a local image reference

    The stream is released when the block exits, whether decoding succeeded
    or not. Caller-owned file objects are rewound but left open.

    Raises:
        ImageLoadError: If the reference cannot be opened
    """
    label = describe_ref(ref)

    if isinstance(ref, (bytes, bytearray)):
        stream = BytesIO(bytes(ref))
        owned = True
    elif isinstance(ref, str) and ref.startswith("data:"):
        try:
            _, data = parse_data_url(ref)
        except ValueError as e:
            raise ImageLoadError(label, str(e)) from e
        stream = BytesIO(data)
        owned = True
    elif isinstance(ref, (str, Path)):
        path = Path(ref)
        if not path.is_file():
            raise ImageLoadError(label, "file not found")
        try:
            stream = open(path, "rb")
        except OSError as e:
            raise ImageLoadError(label, str(e)) from e
        owned = True
    elif hasattr(ref, "read"):
        stream = ref
        owned = False
        if hasattr(stream, "seek"):
            stream.seek(0)
    else:
        raise ImageLoadError(label, f"unsupported reference type {type(ref).__name__}")

    try:
        yield stream
    finally:
        if owned:
            stream.close()
            logger.debug(f"Released image source {label}")


async def fetch_bytes(
    url: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = None
) -> bytes:
    """
    Download image bytes over HTTP(S)

    Args:
        url: Image URL
        client: Optional shared client (a private one is created otherwise)
        timeout: Request timeout in seconds

    Returns:
        Response body

    Raises:
        ImageLoadError: On transport errors or non-2xx responses
    """
    timeout = timeout or settings.IMAGE_FETCH_TIMEOUT

    try:
        if client is None:
            async with httpx.AsyncClient(follow_redirects=True, timeout=timeout) as own_client:
                response = await own_client.get(url)
        else:
            response = await client.get(url, timeout=timeout)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise ImageLoadError(url, f"HTTP {e.response.status_code}") from e
    except httpx.HTTPError as e:
        raise ImageLoadError(url, str(e) or type(e).__name__) from e

    logger.debug(f"Fetched {len(response.content)} bytes from {url}")
    return response.content


def _decode(data: bytes, label: str) -> Image.Image:
    try:
        return decode_image(data)
    except Exception as e:
        if is_image_error(e):
            raise ImageLoadError(label, "not a decodable image") from e
        raise


async def load_image(
    ref: ImageRef,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = None
) -> Image.Image:
    """
    Load and fully decode an image

    The returned image is detached from its source (pixels in memory), so it
    can always be drawn and exported later.

    Args:
        ref: http(s) URL, data URL, file path, raw bytes or binary file object
        client: Optional httpx client for remote references
        timeout: Request timeout for remote references

    Returns:
        Decoded PIL Image

    Raises:
        ImageLoadError: If the image cannot be fetched or decoded
    """
    label = describe_ref(ref)

    if _is_remote(ref):
        data = await fetch_bytes(ref, client=client, timeout=timeout)
    else:
        with open_source(ref) as stream:
            try:
                data = stream.read()
            except OSError as e:
                raise ImageLoadError(label, str(e)) from e

    image = _decode(data, label)
    logger.debug(f"Decoded {label}: {image.width}x{image.height} {image.mode}")
    return image


def read_source_bytes(ref: ImageRef) -> bytes:
    """
    Read all bytes of a local reference (bytes, data URL, path or file object)

    Raises:
        ImageLoadError: If the reference cannot be read
    """
    with open_source(ref) as stream:
        try:
            return stream.read()
        except OSError as e:
            raise ImageLoadError(describe_ref(ref), str(e)) from e


def read_image_size(ref: ImageRef) -> Tuple[int, int]:
    """
    Read intrinsic (width, height) from the image header only

    Raises:
        ImageLoadError: If the reference is unreadable or not an image
    """
    data = read_source_bytes(ref)
    try:
        return read_dimensions(data)
    except Exception as e:
        if is_image_error(e):
            raise ImageLoadError(describe_ref(ref), "not a decodable image") from e
        raise
