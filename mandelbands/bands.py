"""Partition an image into horizontal bands and render them concurrently."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable

import numpy as np

from .geometry import ImageBounds, Viewport, pixel_to_point
from .renderer import ITERATION_LIMIT, render_band

DEFAULT_WORKERS = 8
POLICIES = ("ceil", "legacy")
ENGINES = ("python", "tensor")
MAPPINGS = ("image", "band")

BandRenderer = Callable[..., None]


@dataclass(frozen=True)
class Band:
    """Rows ``[top, top + height)`` of an image, rendered by one task."""

    index: int
    top: int
    height: int

    def bounds(self, width: int) -> ImageBounds:
        return ImageBounds(width, self.height)

    def buffer_range(self, width: int) -> slice:
        return slice(self.top * width, (self.top + self.height) * width)

    @property
    def rows(self) -> range:
        return range(self.top, self.top + self.height)


def rows_per_band(height: int, workers: int, policy: str = "ceil") -> int:
    """Number of rows given to each band.

    ``"ceil"`` gives the tightest even split. ``"legacy"`` reproduces the older
    ``height // workers + 1`` rounding, which hands out one spare row per band
    whenever ``workers`` divides ``height``.
    """

    if workers < 1:
        raise ValueError(f"worker count must be positive, got {workers}")
    if policy == "ceil":
        return -(-height // workers)
    if policy == "legacy":
        return height // workers + 1
    raise ValueError(f"unknown band policy '{policy}'. Valid choices: {', '.join(POLICIES)}.")


def plan_bands(height: int, workers: int, policy: str = "ceil") -> list[Band]:
    """Split ``height`` rows into exactly ``workers`` consecutive bands.

    Bands past the last row are empty.
    """

    rows = rows_per_band(height, workers, policy)
    bands = []
    for index in range(workers):
        top = min(index * rows, height)
        bands.append(Band(index=index, top=top, height=min(rows, height - top)))
    return bands


def band_corners(band: Band, bounds: ImageBounds, viewport: Viewport) -> tuple[complex, complex]:
    """Sub-viewport of ``band``, mapped through the whole image's geometry."""

    upper_left = pixel_to_point(bounds, (0, band.top), viewport.upper_left, viewport.lower_right)
    lower_right = pixel_to_point(
        bounds, (bounds.width, band.top + band.height), viewport.upper_left, viewport.lower_right
    )
    return upper_left, lower_right


def resolve_engine(engine: str) -> BandRenderer:
    if engine == "python":
        return render_band
    if engine == "tensor":
        from .tensor_renderer import render_band_tensor

        return render_band_tensor
    raise ValueError(f"unknown engine '{engine}'. Valid choices: {', '.join(ENGINES)}.")


def _band_arguments(
    band: Band, bounds: ImageBounds, viewport: Viewport, mapping: str
) -> tuple[ImageBounds, complex, complex, range | None]:
    """Geometry handed to the band renderer for ``band``.

    ``"image"`` passes the whole image's geometry with the band's rows, so a
    pixel maps to the same point however the image is split. ``"band"`` passes
    the band's own bounds and sub-viewport; rounding then depends on where
    the band edges fall, and the output can change with the worker count.
    """

    if mapping == "image":
        return bounds, viewport.upper_left, viewport.lower_right, band.rows
    band_upper_left, band_lower_right = band_corners(band, bounds, viewport)
    return band.bounds(bounds.width), band_upper_left, band_lower_right, None


def render(
    bounds: ImageBounds,
    upper_left: complex,
    lower_right: complex,
    workers: int = DEFAULT_WORKERS,
    *,
    limit: int = ITERATION_LIMIT,
    policy: str = "ceil",
    engine: str = "python",
    mapping: str = "image",
) -> np.ndarray:
    """Render the whole image and return its flat row-major grayscale buffer.

    Every band owns a disjoint view of the buffer for the lifetime of its task.
    An exception raised by any band propagates once all tasks have finished.

    The ``"python"`` engine holds the GIL while it iterates, so its bands take
    turns rather than run in parallel; ``workers`` only speeds up the
    ``"tensor"`` engine, whose kernels release the GIL.
    """

    viewport = Viewport(upper_left, lower_right)
    if bounds.height == 0:
        raise ValueError("image height must be positive")
    if not 1 <= limit <= 256:
        raise ValueError(f"iteration limit must be between 1 and 256, got {limit}")
    if mapping not in MAPPINGS:
        raise ValueError(f"unknown mapping '{mapping}'. Valid choices: {', '.join(MAPPINGS)}.")
    band_renderer = resolve_engine(engine)
    bands = plan_bands(bounds.height, workers, policy)

    pixels = np.zeros(bounds.pixel_count, dtype=np.uint8)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = []
        for band in bands:
            band_bounds, band_upper_left, band_lower_right, rows = _band_arguments(
                band, bounds, viewport, mapping
            )
            futures.append(
                pool.submit(
                    band_renderer,
                    pixels[band.buffer_range(bounds.width)],
                    band_bounds,
                    band_upper_left,
                    band_lower_right,
                    limit,
                    rows,
                )
            )
        for future in futures:
            future.result()
    return pixels


@dataclass(frozen=True)
class RenderSettings:
    """Tunables of a render pass."""

    workers: int = DEFAULT_WORKERS
    limit: int = ITERATION_LIMIT
    policy: str = "ceil"
    engine: str = "python"
    mapping: str = "image"

    def render(self, bounds: ImageBounds, viewport: Viewport) -> np.ndarray:
        return render(
            bounds,
            viewport.upper_left,
            viewport.lower_right,
            self.workers,
            limit=self.limit,
            policy=self.policy,
            engine=self.engine,
            mapping=self.mapping,
        )
