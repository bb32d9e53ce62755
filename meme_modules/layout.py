"""
Layout Engine - Pure geometry for image fitting and caption placement

Nothing here touches a drawing surface, so every rule can be tested without
a rendering environment.
"""

import re
from dataclasses import dataclass
from typing import List, Tuple, Optional


# Caption styling
TEXT_INSET = 20  # px from the top/bottom canvas edge
STROKE_RATIO = 0.1  # outline line width relative to font size

# Adaptive font sizing
FONT_BASE_RATIO = 0.04
FONT_MAX_RATIO = 0.08
FONT_MIN_BASE = 16.0
FONT_MAX_SIZE = 72.0
LENGTH_KNEE = 10  # characters before captions start shrinking
LENGTH_DECAY = 0.02  # per character past the knee
LENGTH_FLOOR = 0.5

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class DrawRect:
    """Where a scaled image lands on the canvas"""
    x: float
    y: float
    width: float
    height: float

    def rounded(self) -> Tuple[int, int, int, int]:
        """Integer (x, y, width, height) for raster drawing, never below 1x1"""
        return (
            int(round(self.x)),
            int(round(self.y)),
            max(1, int(round(self.width))),
            max(1, int(round(self.height))),
        )


@dataclass(frozen=True)
class TextPlacement:
    """Caption placement information"""
    text_type: str  # 'top' or 'bottom'
    text: str  # normalized caption
    x: float  # horizontal center
    y: float  # top of the text
    font_size: float
    line_width: float  # stroke outline width


def _require_positive(**values: float) -> None:
    for name, value in values.items():
        if not value > 0:
            raise ValueError(f"{name} must be positive, got {value}")


def fit_and_center(
    image_width: float,
    image_height: float,
    canvas_width: float,
    canvas_height: float
) -> DrawRect:
    """
    Scale an image to fit the canvas and center it (letterbox, no crop)

    Args:
        image_width: Intrinsic image width
        image_height: Intrinsic image height
        canvas_width: Target canvas width
        canvas_height: Target canvas height

    Returns:
        DrawRect with the drawn size and offset
    """
    _require_positive(
        image_width=image_width,
        image_height=image_height,
        canvas_width=canvas_width,
        canvas_height=canvas_height,
    )

    image_aspect = image_width / image_height
    canvas_aspect = canvas_width / canvas_height

    if image_aspect > canvas_aspect:
        # Image is wider - full width, letterbox top/bottom
        draw_width = float(canvas_width)
        draw_height = canvas_width / image_aspect
        return DrawRect(0.0, (canvas_height - draw_height) / 2, draw_width, draw_height)

    # Image is taller (or same shape) - full height, pillarbox left/right
    draw_height = float(canvas_height)
    draw_width = canvas_height * image_aspect
    return DrawRect((canvas_width - draw_width) / 2, 0.0, draw_width, draw_height)


def fit_within_bounds(
    width: int,
    height: int,
    max_width: int,
    max_height: int
) -> Tuple[int, int]:
    """
    Downscale dimensions to fit within bounds, keeping aspect ratio

    Dimensions already within bounds are returned unchanged.

    Returns:
        (width, height) rounded to integers
    """
    _require_positive(width=width, height=height, max_width=max_width, max_height=max_height)

    new_width, new_height = float(width), float(height)

    if new_width > max_width or new_height > max_height:
        aspect_ratio = new_width / new_height

        if new_width > max_width:
            new_width = float(max_width)
            new_height = new_width / aspect_ratio

        if new_height > max_height:
            new_height = float(max_height)
            new_width = new_height * aspect_ratio

    return max(1, int(round(new_width))), max(1, int(round(new_height)))


def thumbnail_dimensions(width: int, height: int, target_size: int) -> Tuple[int, int]:
    """
    Size a thumbnail so its longer side equals target_size

    Returns:
        (width, height) truncated to integers
    """
    _require_positive(width=width, height=height, target_size=target_size)

    aspect_ratio = width / height
    thumb_width, thumb_height = float(target_size), float(target_size)

    if aspect_ratio > 1:
        thumb_height = target_size / aspect_ratio
    else:
        thumb_width = target_size * aspect_ratio

    return max(1, int(thumb_width)), max(1, int(thumb_height))


def normalize_caption(text: Optional[str]) -> str:
    """
    Uppercase, trim and collapse internal whitespace

    Idempotent: normalize_caption(normalize_caption(s)) == normalize_caption(s)
    """
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text.upper().strip())


def calculate_font_size(canvas_width: float, caption: str) -> float:
    """
    Calculate caption font size from canvas width and caption length

    Captions up to 10 characters use the base size; longer ones shrink by
    2% per extra character, floored at half of the base size. The result
    never exceeds min(canvas_width * 0.08, 72).

    Args:
        canvas_width: Canvas width in pixels
        caption: Caption text (already normalized)

    Returns:
        Font size in pixels
    """
    base_size = max(canvas_width * FONT_BASE_RATIO, FONT_MIN_BASE)
    max_size = min(canvas_width * FONT_MAX_RATIO, FONT_MAX_SIZE)

    length_factor = min(1.0, max(LENGTH_FLOOR, 1 - (len(caption) - LENGTH_KNEE) * LENGTH_DECAY))

    return min(base_size * length_factor, max_size)


def caption_placements(
    canvas_width: int,
    canvas_height: int,
    top_caption: Optional[str],
    bottom_caption: Optional[str]
) -> List[TextPlacement]:
    """
    Compute placements for the non-empty captions

    Top caption sits TEXT_INSET below the top edge; the bottom caption is
    lifted by its own font size plus TEXT_INSET.

    Returns:
        Placements in draw order (top first)
    """
    placements = []
    center_x = canvas_width / 2

    top_text = normalize_caption(top_caption)
    if top_text:
        font_size = calculate_font_size(canvas_width, top_text)
        placements.append(TextPlacement(
            text_type="top",
            text=top_text,
            x=center_x,
            y=float(TEXT_INSET),
            font_size=font_size,
            line_width=font_size * STROKE_RATIO,
        ))

    bottom_text = normalize_caption(bottom_caption)
    if bottom_text:
        font_size = calculate_font_size(canvas_width, bottom_text)
        placements.append(TextPlacement(
            text_type="bottom",
            text=bottom_text,
            x=center_x,
            y=canvas_height - font_size - TEXT_INSET,
            font_size=font_size,
            line_width=font_size * STROKE_RATIO,
        ))

    return placements


def font_size_bounds(canvas_width: float) -> Tuple[float, float]:
    """
    Smallest and largest size calculate_font_size can return for a canvas width
    """
    base_size = max(canvas_width * FONT_BASE_RATIO, FONT_MIN_BASE)
    max_size = min(canvas_width * FONT_MAX_RATIO, FONT_MAX_SIZE)
    return min(base_size * LENGTH_FLOOR, max_size), min(base_size, max_size)

