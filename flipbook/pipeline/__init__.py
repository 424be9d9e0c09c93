"""Viewer pipeline: loading, rasterizing, layout, page turns, covers and sound."""

from .loader import DocumentLoader, LoadError, PageRangeError, get_page, open_document
from .rasterizer import RENDER_CANCELLED, PageRasterizer, RenderError, RenderSurface
from .layout import LayoutEngine, classify_device, compute_layout
from .flip_controller import FlipController
from .cover_cache import CoverCache, cover_cache_key
from .sound import SoundEngine, synthesize_flip

__all__ = [
    "DocumentLoader",
    "LoadError",
    "PageRangeError",
    "get_page",
    "open_document",
    "RENDER_CANCELLED",
    "PageRasterizer",
    "RenderError",
    "RenderSurface",
    "LayoutEngine",
    "classify_device",
    "compute_layout",
    "FlipController",
    "CoverCache",
    "cover_cache_key",
    "SoundEngine",
    "synthesize_flip",
]
