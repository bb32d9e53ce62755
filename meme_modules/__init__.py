"""
Meme Studio Modules
"""

from .compositor import Compositor, MemeComposite, RenderOptions, RenderedRaster
from .exporter import Exporter, export, export_data_url
from .optimizer import ImageOptimizer, select_format
from .session import EditingSession
from .publisher import MemePublisher

__all__ = [
    "Compositor",
    "MemeComposite",
    "RenderOptions",
    "RenderedRaster",
    "Exporter",
    "export",
    "export_data_url",
    "ImageOptimizer",
    "select_format",
    "EditingSession",
    "MemePublisher",
]
