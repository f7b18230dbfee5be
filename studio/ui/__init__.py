"""
Studio UI - Rendering and visual components.
"""
from .helpers import (
    draw_aa_circle,
    draw_pill,
    fit_text,
    fit_cover,
)
from .image_cache import ImageCache
from .renderer import Renderer
from .context import RenderContext

__all__ = [
    'draw_aa_circle',
    'draw_pill',
    'fit_text',
    'fit_cover',
    'ImageCache',
    'Renderer',
    'RenderContext',
]
