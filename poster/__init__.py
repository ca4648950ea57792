"""Poster rendering: colour extraction, layout, rasterization and PNG export."""

from .colors import DEFAULT_PALETTE, ColorExtractor, Palette, extract_palette
from .exporter import export_poster, sanitize_filename
from .layout import LAYOUTS, Template, build_poster
from .renderer import PosterRenderer, PosterView

__all__ = [
    "DEFAULT_PALETTE",
    "ColorExtractor",
    "LAYOUTS",
    "Palette",
    "PosterRenderer",
    "PosterView",
    "Template",
    "build_poster",
    "export_poster",
    "extract_palette",
    "sanitize_filename",
]
