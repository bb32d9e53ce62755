"""
Publisher Module - Save rendered memes to the gallery collaborators
"""

import time
from pathlib import Path
from typing import Optional

from loguru import logger

from meme_modules.collaborators import BlobStore, MemeDraft, MemeRecord, MemeRepository
from meme_modules.compositor import RenderedRaster
from meme_modules.exporter import DEFAULT_MIME_TYPE, export
from meme_modules.image_loader import ImageRef, read_source_bytes
from meme_modules.optimizer import ImageOptimizer
from meme_utils.exceptions import InvalidFileError, MemeStudioError
from meme_utils.image_utils import MIME_EXTENSIONS
from meme_utils.validation import generate_unique_filename, validate_image_for_meme


_EXTENSION_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


def guess_content_type(filename: str) -> Optional[str]:
    """MIME type from a file extension"""
    return _EXTENSION_TYPES.get(Path(filename).suffix.lower().lstrip("."))


class MemePublisher:
    """
    Uploads meme images and records them through injected collaborators
    """

    def __init__(
        self,
        repository: MemeRepository,
        storage: BlobStore,
        optimizer: ImageOptimizer = None
    ):
        """
        Initialize MemePublisher

        Args:
            repository: Persistence collaborator
            storage: Storage collaborator
            optimizer: Optimizer for source image uploads
        """
        self.repository = repository
        self.storage = storage
        self.optimizer = optimizer or ImageOptimizer()

    async def save(self, raster: RenderedRaster, top_text: str, bottom_text: str) -> MemeRecord:
        """
        Export, upload and record a rendered meme

        If recording fails, the uploaded image is deleted again before the
        error propagates.

        Args:
            raster: Rendered meme
            top_text: Top caption as typed
            bottom_text: Bottom caption as typed

        Returns:
            Stored meme record
        """
        blob = await export(raster, DEFAULT_MIME_TYPE)
        filename = f"meme-{int(time.time() * 1000)}.{blob.extension}"

        image_url = await self.storage.upload(blob.data, filename, blob.mime_type)

        try:
            record = await self.repository.create(
                MemeDraft(image_url=image_url, top_text=top_text, bottom_text=bottom_text)
            )
        except Exception:
            try:
                await self.storage.delete(image_url)
            except MemeStudioError as cleanup_error:
                logger.warning(f"Failed to remove orphaned upload {image_url}: {cleanup_error}")
            raise

        logger.info(f"Saved meme {record.id} -> {image_url}")
        return record

    async def upload_image(
        self,
        file: ImageRef,
        filename: str,
        content_type: Optional[str] = None,
        optimize: bool = False
    ) -> str:
        """
        Upload a source image picked in the editor

        Args:
            file: Bytes, path or binary file object
            filename: Original file name (extension decides the stored name)
            content_type: MIME type (guessed from filename when omitted)
            optimize: Downscale/re-encode before upload

        Returns:
            Public URL of the uploaded image

        Raises:
            InvalidFileError: If the file fails the type/size policy
            OptimizeError: If the file cannot be optimized
        """
        data = read_source_bytes(file)
        content_type = content_type or guess_content_type(filename)

        check = validate_image_for_meme(content_type, len(data))
        if not check.valid:
            raise InvalidFileError(check.error or "Invalid file")

        if optimize:
            optimized = await self.optimizer.optimize_for_upload(data)
            data = optimized.blob.data
            content_type = optimized.blob.mime_type
            filename = f"upload.{MIME_EXTENSIONS.get(content_type, 'bin')}"

        return await self.storage.upload(data, generate_unique_filename(filename), content_type)
