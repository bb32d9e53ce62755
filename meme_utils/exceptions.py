"""
Custom exceptions for Meme Studio
"""


class MemeStudioError(Exception):
    """Base class for every error raised by Meme Studio"""

    def __init__(self, message: str = None):
        self.message = message or self.__class__.__name__
        super().__init__(self.message)


class ImageLoadError(MemeStudioError):
    """
    Raised when a source image cannot be fetched or decoded.

    Covers network failures, HTTP error statuses, missing files and bytes
    that are not an image.
    """

    def __init__(self, ref: str, reason: str = None):
        self.ref = ref
        self.reason = reason
        message = f"Failed to load image: {ref}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class RenderError(MemeStudioError):
    """Raised when compositing fails after the source image was loaded"""


class EncodeError(MemeStudioError):
    """
    Raised when a drawable surface cannot be encoded to a blob or data URL.
    """

    def __init__(self, mime_type: str, reason: str = None):
        self.mime_type = mime_type
        message = f"Failed to encode surface as {mime_type}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class OptimizeError(MemeStudioError):
    """Raised when a user-supplied file cannot be decoded or re-encoded"""


class ClipboardError(MemeStudioError):
    """Raised when the system clipboard is unavailable or rejects the write"""


class PersistenceError(MemeStudioError):
    """Raised by meme repositories when a record operation fails"""


class MemeNotFoundError(PersistenceError):
    """Raised when a meme record does not exist"""

    def __init__(self, meme_id: str):
        self.meme_id = meme_id
        super().__init__(f"Meme not found: {meme_id}")


class StorageError(MemeStudioError):
    """Raised by blob stores when an upload or delete fails"""


class InvalidFileError(MemeStudioError):
    """Raised when an upload is refused by the file type/size policy"""
