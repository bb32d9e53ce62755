"""
Compositor Module - Fit a background image onto a canvas and burn in outlined captions
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import httpx
import numpy as np
from loguru import logger
from PIL import Image, ImageDraw, ImageFont

from config import settings
from meme_modules.exporter import DEFAULT_MIME_TYPE, DEFAULT_QUALITY, encode_surface
from meme_modules.image_loader import ImageRef, describe_ref, load_image
from meme_modules.layout import TextPlacement, caption_placements, fit_and_center
from meme_utils.exceptions import EncodeError, ImageLoadError, RenderError
from meme_utils.image_utils import Blob


FILL_COLOR = (255, 255, 255, 255)
STROKE_COLOR = (0, 0, 0, 255)
TRANSPARENT = (0, 0, 0, 0)


@dataclass(frozen=True)
class RenderOptions:
    """Target canvas size and output quality for one render"""
    width: int = settings.CANVAS_WIDTH
    height: int = settings.CANVAS_HEIGHT
    quality: float = settings.OUTPUT_QUALITY

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Canvas size must be positive, got {self.width}x{self.height}")
        if not 0.0 <= self.quality <= 1.0:
            raise ValueError(f"Quality must be within [0, 1], got {self.quality}")


@dataclass(frozen=True)
class MemeComposite:
    """One render request"""
    source_image_ref: ImageRef
    top_caption: str = ""
    bottom_caption: str = ""
    options: RenderOptions = field(default_factory=RenderOptions)


class RenderedRaster:
    """
    Finished meme surface with lazily encoded blob / data URL forms

    Encoded forms are computed on first access and memoized per
    (mime_type, quality).
    """

    def __init__(self, surface: Image.Image, quality: float = DEFAULT_QUALITY):
        self._surface = surface
        self.quality = quality
        self._blobs: Dict[Tuple[str, float], Blob] = {}

    @property
    def surface(self) -> Image.Image:
        if self._surface is None:
            raise RenderError("Raster has been released")
        return self._surface

    @property
    def width(self) -> int:
        return self.surface.width

    @property
    def height(self) -> int:
        return self.surface.height

    @property
    def released(self) -> bool:
        return self._surface is None

    def blob(self, mime_type: str = DEFAULT_MIME_TYPE, quality: float = None) -> Blob:
        """
        Encoded image bytes

        Raises:
            EncodeError: If encoding fails
        """
        quality = self.quality if quality is None else quality
        key = (mime_type, quality)
        if key not in self._blobs:
            if self._surface is None:
                raise EncodeError(mime_type, "raster has been released")
            self._blobs[key] = encode_surface(self._surface, mime_type, quality)
        return self._blobs[key]

    def data_url(self, mime_type: str = DEFAULT_MIME_TYPE, quality: float = None) -> str:
        """Base64 data URL of the encoded image"""
        return self.blob(mime_type, quality).to_data_url()

    def to_array(self) -> np.ndarray:
        """RGBA pixels as a (height, width, 4) uint8 array"""
        return np.asarray(self.surface.convert("RGBA"))

    def release(self) -> None:
        """Drop the surface and every cached encoding"""
        self._surface = None
        self._blobs.clear()


class Compositor:
    """
    Renders memes: background image fitted to the canvas plus top/bottom captions

    Stateless between calls; every render allocates its own surface.
    """

    def __init__(
        self,
        fonts_dir: Path = None,
        font_candidates: List[str] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize Compositor

        Args:
            fonts_dir: Directory searched first for caption fonts
            font_candidates: Font file names in order of preference
            client: Optional shared httpx client for remote images
        """
        self.fonts_dir = Path(fonts_dir or settings.FONTS_DIR)
        self.font_candidates = font_candidates or settings.FONT_CANDIDATES
        self.client = client
        self._font_path: Optional[Path] = None
        self._font_resolved = False
        self._fonts: Dict[int, ImageFont.FreeTypeFont] = {}

    async def render(
        self,
        source_image_ref: ImageRef,
        top_caption: str = "",
        bottom_caption: str = "",
        options: RenderOptions = None
    ) -> RenderedRaster:
        """
        Create a complete meme

        Args:
            source_image_ref: URL, data URL, path, bytes or file object
            top_caption: Top caption (normalized before drawing)
            bottom_caption: Bottom caption (normalized before drawing)
            options: Canvas size and quality

        Returns:
            RenderedRaster

        Raises:
            ImageLoadError: If the source image cannot be loaded
            RenderError: If drawing fails
        """
        options = options or RenderOptions()
        logger.debug(
            f"Rendering {describe_ref(source_image_ref)} at {options.width}x{options.height}"
        )

        image = await load_image(source_image_ref, client=self.client)

        try:
            surface = self.draw_background(image, options.width, options.height)

            placements = caption_placements(options.width, options.height, top_caption, bottom_caption)
            for placement in placements:
                self.draw_caption(surface, placement)
        except (ImageLoadError, RenderError):
            raise
        except Exception as e:
            raise RenderError(f"Failed to render meme: {e}") from e
        finally:
            image.close()

        logger.debug(f"Rendered meme with {len(placements)} caption(s)")

        return RenderedRaster(surface, quality=options.quality)

    async def render_composite(self, composite: MemeComposite) -> RenderedRaster:
        """Render a MemeComposite request"""
        return await self.render(
            composite.source_image_ref,
            composite.top_caption,
            composite.bottom_caption,
            composite.options,
        )

    def draw_background(self, image: Image.Image, width: int, height: int) -> Image.Image:
        """
        Create a transparent surface and draw the image fitted and centered

        Args:
            image: Decoded source image
            width: Canvas width
            height: Canvas height

        Returns:
            RGBA surface
        """
        surface = Image.new("RGBA", (width, height), TRANSPARENT)

        rect = fit_and_center(image.width, image.height, width, height)
        x, y, draw_width, draw_height = rect.rounded()

        scaled = image.convert("RGBA").resize((draw_width, draw_height), Image.LANCZOS)
        surface.alpha_composite(scaled, (x, y))

        return surface

    def draw_caption(self, surface: Image.Image, placement: TextPlacement) -> None:
        """
        Draw one caption: black outline first, white fill on top

        Both passes use the same anchor (horizontal center, text top).
        """
        font = self.get_font(placement.font_size)
        draw = ImageDraw.Draw(surface)
        position = (placement.x, placement.y)

        # A canvas stroke straddles the glyph edge, so only half of it shows outside
        stroke_width = max(1, int(round(placement.line_width / 2)))

        draw.text(
            position,
            placement.text,
            font=font,
            fill=STROKE_COLOR,
            stroke_width=stroke_width,
            stroke_fill=STROKE_COLOR,
            anchor="mt",
        )
        draw.text(
            position,
            placement.text,
            font=font,
            fill=FILL_COLOR,
            anchor="mt",
        )

    def _resolve_font_path(self) -> Optional[Path]:
        """Find the first available caption font file"""
        search_dirs = [self.fonts_dir] + list(settings.SYSTEM_FONT_DIRS)

        for name in self.font_candidates:
            for directory in search_dirs:
                if not directory.exists():
                    continue
                direct = directory / name
                if direct.is_file():
                    return direct
                # System font trees nest files in family folders
                if directory != self.fonts_dir:
                    match = next(directory.rglob(name), None)
                    if match is not None:
                        return match

        return None

    def get_font(self, font_size: float) -> ImageFont.ImageFont:
        """
        Load the caption font at a pixel size (cached per integer size)

        Falls back to Pillow's built-in scalable font when no bold display
        face is installed.
        """
        size = max(1, int(round(font_size)))
        if size in self._fonts:
            return self._fonts[size]

        if not self._font_resolved:
            self._font_path = self._resolve_font_path()
            self._font_resolved = True
            if self._font_path is None:
                logger.warning(
                    f"No caption font found ({', '.join(self.font_candidates)}), using default"
                )
            else:
                logger.debug(f"Caption font: {self._font_path}")

        if self._font_path is not None:
            try:
                font = ImageFont.truetype(str(self._font_path), size)
            except OSError as e:
                logger.warning(f"Failed to load font {self._font_path}: {e}, using default")
                self._font_path = None
                font = ImageFont.load_default(size=size)
        else:
            font = ImageFont.load_default(size=size)

        self._fonts[size] = font
        return font
