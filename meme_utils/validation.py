"""
Validation rules for the meme editor form and uploaded files
"""

import secrets
import string
import time
from dataclasses import dataclass
from typing import Dict, List, Optional
from urllib.parse import urlparse

from config import settings


@dataclass(frozen=True)
class FileCheck:
    """Outcome of a file policy check"""
    valid: bool
    error: Optional[str] = None


def is_valid_url(url: str) -> bool:
    """True for absolute URLs with a scheme (http, https, data, blob...)"""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False

    if not parsed.scheme:
        return False
    if parsed.scheme in ("http", "https"):
        return bool(parsed.netloc)
    return bool(parsed.netloc or parsed.path)


def validate_meme_form(image_url: str, top_text: str, bottom_text: str) -> Dict[str, str]:
    """
    Validate the editor form

    Returns:
        Field name -> error message; empty when the form is valid
    """
    errors = {}
    image_url = image_url or ""
    top_text = top_text or ""
    bottom_text = bottom_text or ""

    if not image_url.strip():
        errors["image_url"] = "Image URL is required"
    elif not is_valid_url(image_url):
        errors["image_url"] = "Please enter a valid image URL"

    if not top_text.strip() and not bottom_text.strip():
        errors["top_text"] = "At least one text field is required"

    if len(top_text) > settings.CAPTION_MAX_LENGTH:
        errors["top_text"] = f"Top text must be {settings.CAPTION_MAX_LENGTH} characters or less"

    if len(bottom_text) > settings.CAPTION_MAX_LENGTH:
        errors["bottom_text"] = f"Bottom text must be {settings.CAPTION_MAX_LENGTH} characters or less"

    return errors


def _check_file(
    content_type: Optional[str],
    size: int,
    allowed_types: List[str],
    max_size: int,
    type_error: str
) -> FileCheck:
    if (content_type or "").lower() not in allowed_types:
        return FileCheck(False, type_error)

    if size > max_size:
        megabytes = max_size // (1024 * 1024)
        return FileCheck(False, f"Image file size must be less than {megabytes}MB")

    return FileCheck(True)


def validate_image_file(content_type: Optional[str], size: int) -> FileCheck:
    """Policy for gallery uploads: JPEG, PNG, GIF or WebP up to 5MB"""
    return _check_file(
        content_type,
        size,
        settings.ALLOWED_UPLOAD_TYPES,
        settings.MAX_UPLOAD_BYTES,
        "Please select a valid image file (JPEG, PNG, GIF, or WebP)",
    )


def validate_image_for_meme(content_type: Optional[str], size: int) -> FileCheck:
    """Policy for editor source images: JPEG or PNG up to 10MB"""
    return _check_file(
        content_type,
        size,
        settings.ALLOWED_MEME_SOURCE_TYPES,
        settings.MAX_MEME_SOURCE_BYTES,
        "Please select a JPEG or PNG image file",
    )


def generate_unique_filename(original_name: str) -> str:
    """
    Build a collision-resistant storage name: <epoch ms>-<random>.<ext>
    """
    timestamp = int(time.time() * 1000)
    alphabet = string.ascii_lowercase + string.digits
    random_part = "".join(secrets.choice(alphabet) for _ in range(13))
    extension = original_name.rsplit(".", 1)[-1] if "." in original_name else "bin"
    return f"{timestamp}-{random_part}.{extension.lower()}"


def random_placeholder_image() -> str:
    """URL of a random placeholder image for a fresh editor"""
    size = settings.PLACEHOLDER_IMAGE_SIZE
    return f"https://picsum.photos/{size}/{size}?random={int(time.time() * 1000)}"
