"""
Configuration settings for Meme Studio
"""

import sys
from pathlib import Path
from loguru import logger
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Project paths
    PROJECT_ROOT: Path = Path(__file__).parent
    WORKSPACE_DIR: Path = PROJECT_ROOT / "workspace"
    DATA_DIR: Path = WORKSPACE_DIR / "memes"  # one JSON file per meme record
    MEDIA_DIR: Path = WORKSPACE_DIR / "media"  # uploaded meme images
    DOWNLOADS_DIR: Path = WORKSPACE_DIR / "downloads"
    ASSETS_DIR: Path = PROJECT_ROOT / "assets"
    FONTS_DIR: Path = ASSETS_DIR / "fonts"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"

    # Caption font (first match wins, bundled fonts dir is searched before system paths)
    FONT_CANDIDATES: list[str] = [
        "Impact.ttf",
        "impact.ttf",
        "Anton-Regular.ttf",
        "Arial Black.ttf",
        "ariblk.ttf",
        "DejaVuSans-Bold.ttf",
        "LiberationSans-Bold.ttf",
    ]
    SYSTEM_FONT_DIRS: list[Path] = [
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        Path("/Library/Fonts"),
        Path("/System/Library/Fonts"),
        Path("C:/Windows/Fonts"),
    ]

    # Compositor defaults
    CANVAS_WIDTH: int = 800
    CANVAS_HEIGHT: int = 600
    OUTPUT_QUALITY: float = 0.9
    OUTPUT_MIME_TYPE: str = "image/png"

    # Image loading
    IMAGE_FETCH_TIMEOUT: float = 15.0  # seconds, per request

    # Optimizer defaults
    OPTIMIZE_MAX_WIDTH: int = 1920
    OPTIMIZE_MAX_HEIGHT: int = 1080
    OPTIMIZE_QUALITY: float = 0.8
    THUMBNAIL_SIZE: int = 200
    THUMBNAIL_QUALITY: float = 0.7

    # Dimension validation
    MIN_IMAGE_WIDTH: int = 100
    MIN_IMAGE_HEIGHT: int = 100
    MAX_IMAGE_WIDTH: int = 5000
    MAX_IMAGE_HEIGHT: int = 5000

    # Upload policy
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024  # gallery uploads
    MAX_MEME_SOURCE_BYTES: int = 10 * 1024 * 1024  # source images picked in the editor
    ALLOWED_UPLOAD_TYPES: list[str] = ["image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"]
    ALLOWED_MEME_SOURCE_TYPES: list[str] = ["image/jpeg", "image/jpg", "image/png"]
    CAPTION_MAX_LENGTH: int = 50

    # Placeholder images
    PLACEHOLDER_IMAGE_SIZE: int = 400

    # FastAPI settings
    API_TITLE: str = "Meme Studio Gallery API"
    API_VERSION: str = "1.0.0"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    PUBLIC_BASE_URL: str = "http://localhost:8000"  # prefix for public media URLs

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "app.log"
    LOG_ROTATION: str = "500 MB"
    LOG_RETENTION: str = "10 days"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()

# Create directories if they don't exist
for directory in [
    settings.DATA_DIR,
    settings.MEDIA_DIR,
    settings.DOWNLOADS_DIR,
    settings.FONTS_DIR,
]:
    directory.mkdir(parents=True, exist_ok=True)


def configure_logging(level: str = None, log_file: bool = True) -> None:
    """
    Configure loguru sinks for the API server and the CLI

    Args:
        level: Console log level (default: settings.LOG_LEVEL)
        log_file: Also write a rotating DEBUG log under LOGS_DIR
    """
    logger.remove()
    logger.add(sys.stderr, level=level or settings.LOG_LEVEL)

    if log_file:
        settings.LOGS_DIR.mkdir(parents=True, exist_ok=True)
        logger.add(
            settings.LOGS_DIR / settings.LOG_FILE,
            rotation=settings.LOG_ROTATION,
            retention=settings.LOG_RETENTION,
            level="DEBUG",
        )
