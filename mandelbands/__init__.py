"""Public API for banded, multi-threaded Mandelbrot rendering."""

from .bands import (
    DEFAULT_WORKERS,
    Band,
    RenderSettings,
    band_corners,
    plan_bands,
    render,
    resolve_engine,
    rows_per_band,
)
from .geometry import (
    ImageBounds,
    Viewport,
    parse_bounds,
    parse_complex,
    parse_pair,
    pixel_to_point,
)
from .renderer import ITERATION_LIMIT, escape_time, intensity, render_band

__all__ = [
    "Band",
    "DEFAULT_WORKERS",
    "ITERATION_LIMIT",
    "ImageBounds",
    "RenderSettings",
    "Viewport",
    "band_corners",
    "escape_time",
    "intensity",
    "parse_bounds",
    "parse_complex",
    "parse_pair",
    "pixel_to_point",
    "plan_bands",
    "render",
    "render_band",
    "resolve_engine",
    "rows_per_band",
]
