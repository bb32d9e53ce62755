"""
Image Optimizer - Downscale and re-encode user images before upload
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from loguru import logger
from PIL import Image

from config import settings
from meme_modules.exporter import encode_surface
from meme_modules.image_loader import ImageRef, describe_ref, read_source_bytes
from meme_modules.layout import fit_within_bounds, thumbnail_dimensions
from meme_utils.exceptions import EncodeError, ImageLoadError, OptimizeError
from meme_utils.image_utils import (
    Blob,
    decode_image,
    is_image_error,
    mime_for_format,
    read_dimensions,
    to_drawable,
)


SIZE_TOO_SMALL = "size-too-small"
SIZE_TOO_LARGE = "size-too-large"
UNDECODABLE = "undecodable"


@dataclass(frozen=True)
class OptimizedImage:
    """Result of optimizing one file"""
    blob: Blob
    data_url: str
    original_size: int
    optimized_size: int
    compression_ratio: float  # signed: negative when re-encoding grew the file
    width: int
    height: int


@dataclass(frozen=True)
class DimensionCheck:
    """Outcome of a dimension validation; failures are data, not exceptions"""
    valid: bool
    width: int
    height: int
    error: Optional[str] = None  # SIZE_TOO_SMALL / SIZE_TOO_LARGE / UNDECODABLE
    message: Optional[str] = None


def is_webp_supported() -> bool:
    """
    Probe whether this runtime can encode WebP

    Encodes a 1x1 surface as image/webp; unsupported types come back as PNG.
    """
    probe = Image.new("RGB", (1, 1))
    try:
        blob = encode_surface(probe, "image/webp", 0.8)
    except EncodeError:
        return False
    return blob.to_data_url().startswith("data:image/webp")


@lru_cache(maxsize=None)
def select_format() -> str:
    """
    Preferred upload format for this runtime: 'webp' if supported, else 'jpeg'

    Probed once per process.
    """
    fmt = "webp" if is_webp_supported() else "jpeg"
    logger.debug(f"Selected upload format: {fmt}")
    return fmt


class ImageOptimizer:
    """
    Resizes and re-encodes images, creates thumbnails and validates dimensions
    """

    def __init__(
        self,
        max_width: int = settings.OPTIMIZE_MAX_WIDTH,
        max_height: int = settings.OPTIMIZE_MAX_HEIGHT,
        quality: float = settings.OPTIMIZE_QUALITY
    ):
        """
        Initialize ImageOptimizer

        Args:
            max_width: Default bounding width
            max_height: Default bounding height
            quality: Default quality factor (0-1)
        """
        self.max_width = max_width
        self.max_height = max_height
        self.quality = quality

    def _read(self, file: ImageRef, error_cls=OptimizeError) -> bytes:
        try:
            return read_source_bytes(file)
        except ImageLoadError as e:
            raise error_cls(str(e)) from e

    def _decode(self, data: bytes, label: str) -> Image.Image:
        try:
            image = decode_image(data)
        except Exception as e:
            if is_image_error(e):
                raise OptimizeError(f"Failed to load image: {label}") from e
            raise

        drawable = to_drawable(image)
        if drawable is not image:
            image.close()
        return drawable

    async def optimize(
        self,
        file: ImageRef,
        max_width: int = None,
        max_height: int = None,
        quality: float = None,
        format: str = "jpeg"
    ) -> OptimizedImage:
        """
        Optimize an image before upload

        Images larger than the bounds are downscaled (aspect ratio kept);
        smaller images keep their dimensions. Both are re-encoded.

        Args:
            file: Bytes, path or binary file object
            max_width: Bounding width (default 1920)
            max_height: Bounding height (default 1080)
            quality: Quality factor 0-1 (default 0.8)
            format: 'jpeg', 'png' or 'webp'

        Returns:
            OptimizedImage

        Raises:
            OptimizeError: If the file cannot be decoded or encoded
        """
        max_width = max_width or self.max_width
        max_height = max_height or self.max_height
        quality = self.quality if quality is None else quality
        if not 0.0 <= quality <= 1.0:
            raise ValueError(f"Quality must be within [0, 1], got {quality}")

        label = describe_ref(file)
        data = self._read(file)
        original_size = len(data)

        image = self._decode(data, label)
        try:
            width, height = fit_within_bounds(image.width, image.height, max_width, max_height)

            if (width, height) != image.size:
                surface = image.resize((width, height), Image.LANCZOS)
            else:
                surface = image

            mime_type = mime_for_format(format)
            try:
                blob = encode_surface(surface, mime_type, quality)
            except EncodeError as e:
                raise OptimizeError("Failed to create optimized image blob") from e
        finally:
            image.close()

        optimized_size = blob.size
        compression_ratio = (original_size - optimized_size) / original_size

        logger.debug(
            f"Optimized {label}: {original_size} -> {optimized_size} bytes "
            f"({compression_ratio:.1%}), {width}x{height} {blob.mime_type}"
        )

        return OptimizedImage(
            blob=blob,
            data_url=blob.to_data_url(),
            original_size=original_size,
            optimized_size=optimized_size,
            compression_ratio=compression_ratio,
            width=width,
            height=height,
        )

    async def optimize_for_upload(self, file: ImageRef) -> OptimizedImage:
        """Optimize with default bounds and the runtime's preferred format"""
        return await self.optimize(
            file,
            max_width=settings.OPTIMIZE_MAX_WIDTH,
            max_height=settings.OPTIMIZE_MAX_HEIGHT,
            quality=settings.OPTIMIZE_QUALITY,
            format=select_format(),
        )

    async def create_thumbnail(self, file: ImageRef, size: int = settings.THUMBNAIL_SIZE) -> str:
        """
        Create a JPEG thumbnail whose longer side equals size

        Args:
            file: Bytes, path or binary file object
            size: Target length of the longer side

        Returns:
            Data URL (image/jpeg, quality 0.7)

        Raises:
            OptimizeError: If the file cannot be decoded
        """
        label = describe_ref(file)
        image = self._decode(self._read(file), label)
        try:
            thumb_width, thumb_height = thumbnail_dimensions(image.width, image.height, size)
            thumb = image.resize((thumb_width, thumb_height), Image.LANCZOS)
            try:
                blob = encode_surface(thumb, "image/jpeg", settings.THUMBNAIL_QUALITY)
            except EncodeError as e:
                raise OptimizeError("Failed to encode thumbnail") from e
        finally:
            image.close()

        return blob.to_data_url()

    async def validate_dimensions(
        self,
        file: ImageRef,
        min_width: int = settings.MIN_IMAGE_WIDTH,
        min_height: int = settings.MIN_IMAGE_HEIGHT,
        max_width: int = settings.MAX_IMAGE_WIDTH,
        max_height: int = settings.MAX_IMAGE_HEIGHT
    ) -> DimensionCheck:
        """
        Check intrinsic dimensions against bounds without re-encoding

        Returns:
            DimensionCheck; undecodable input reports width = height = 0
        """
        try:
            width, height = read_dimensions(self._read(file))
        except OptimizeError:
            return DimensionCheck(False, 0, 0, UNDECODABLE, "Failed to load image")
        except Exception as e:
            if is_image_error(e):
                return DimensionCheck(False, 0, 0, UNDECODABLE, "Failed to load image")
            raise

        if width < min_width or height < min_height:
            return DimensionCheck(
                False, width, height, SIZE_TOO_SMALL,
                f"Image too small. Minimum size: {min_width}x{min_height}px",
            )

        if width > max_width or height > max_height:
            return DimensionCheck(
                False, width, height, SIZE_TOO_LARGE,
                f"Image too large. Maximum size: {max_width}x{max_height}px",
            )

        return DimensionCheck(True, width, height)
