"""
Utility Functions
"""

from .image_utils import (
    Blob,
    decode_image,
    read_dimensions,
    to_data_url,
    parse_data_url,
)
from .validation import (
    validate_meme_form,
    validate_image_file,
    validate_image_for_meme,
    generate_unique_filename,
)

__all__ = [
    "Blob",
    "decode_image",
    "read_dimensions",
    "to_data_url",
    "parse_data_url",
    "validate_meme_form",
    "validate_image_file",
    "validate_image_for_meme",
    "generate_unique_filename",
]
