"""
Editing Session - Feed caption/image changes to the compositor and keep only the latest render
"""

import asyncio
import itertools
from typing import Optional

from loguru import logger

from meme_modules.compositor import Compositor, RenderedRaster, RenderOptions
from meme_modules.image_loader import ImageRef


class EditingSession:
    """
    Holds the current {image, top caption, bottom caption} triple for one editor

    Every render is tagged with an increasing sequence number. When renders
    overlap, only the one started last is published; earlier results are
    released and reported as None, including their failures.
    """

    def __init__(
        self,
        compositor: Compositor,
        options: RenderOptions = None,
        image_ref: Optional[ImageRef] = None,
        top_caption: str = "",
        bottom_caption: str = ""
    ):
        self.compositor = compositor
        self.options = options or RenderOptions()
        self.image_ref = image_ref
        self.top_caption = top_caption
        self.bottom_caption = bottom_caption

        self._sequence = itertools.count(1)
        self._latest = 0
        self._current: Optional[RenderedRaster] = None
        self._current_sequence = 0

    @property
    def current(self) -> Optional[RenderedRaster]:
        """The single active raster, or None before the first completed render"""
        return self._current

    @property
    def latest_sequence(self) -> int:
        return self._latest

    @property
    def current_sequence(self) -> int:
        """Sequence number of the active raster (0 before the first render)"""
        return self._current_sequence

    def update(
        self,
        image_ref: Optional[ImageRef] = None,
        top_caption: Optional[str] = None,
        bottom_caption: Optional[str] = None,
        options: Optional[RenderOptions] = None
    ) -> None:
        """Change any field of the editing triple (None leaves a field as is)"""
        if image_ref is not None:
            self.image_ref = image_ref
        if top_caption is not None:
            self.top_caption = top_caption
        if bottom_caption is not None:
            self.bottom_caption = bottom_caption
        if options is not None:
            self.options = options

    async def refresh(self, timeout: Optional[float] = None) -> Optional[RenderedRaster]:
        """Render the current triple"""
        if self.image_ref is None:
            raise ValueError("No image selected")
        return await self.render(
            self.image_ref, self.top_caption, self.bottom_caption, self.options, timeout=timeout
        )

    async def render(
        self,
        image_ref: ImageRef,
        top_caption: str = "",
        bottom_caption: str = "",
        options: RenderOptions = None,
        timeout: Optional[float] = None
    ) -> Optional[RenderedRaster]:
        """
        Render and publish the result if no newer render was started meanwhile

        Args:
            image_ref: Source image reference
            top_caption: Top caption
            bottom_caption: Bottom caption
            options: Render options (default: session options)
            timeout: Optional deadline in seconds

        Returns:
            The new current raster, or None if this render went stale

        Raises:
            ImageLoadError / RenderError: From the latest render only
            asyncio.TimeoutError: If the latest render exceeds the timeout
        """
        sequence = next(self._sequence)
        self._latest = sequence

        job = self.compositor.render(image_ref, top_caption, bottom_caption, options or self.options)

        try:
            if timeout is not None:
                raster = await asyncio.wait_for(job, timeout)
            else:
                raster = await job
        except Exception as e:
            if sequence != self._latest:
                logger.debug(f"Discarded failure of stale render #{sequence}: {e}")
                return None
            raise

        if sequence != self._latest:
            logger.debug(f"Discarded stale render #{sequence} (latest #{self._latest})")
            raster.release()
            return None

        previous = self._current
        self._current = raster
        self._current_sequence = sequence
        if previous is not None and previous is not raster:
            previous.release()

        return raster

    def close(self) -> None:
        """Release the active raster"""
        if self._current is not None:
            self._current.release()
            self._current = None
