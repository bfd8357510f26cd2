"""Escape-time evaluation and the scalar band renderer."""

from __future__ import annotations

from typing import Optional

import numpy as np

from .geometry import ImageBounds, pixel_to_point

ITERATION_LIMIT = 225
HORIZON = 4.0


def escape_time(c: complex, limit: int) -> Optional[int]:
    """Return the iteration at which the orbit of ``c`` leaves radius 2.

    ``None`` means the orbit stayed bounded for ``limit`` iterations and the
    point is taken to be in the Mandelbrot set.
    """

    z = complex(0.0, 0.0)
    for i in range(limit):
        z = z * z + c
        if z.real * z.real + z.imag * z.imag > HORIZON:
            return i
    return None


def intensity(count: Optional[int]) -> int:
    if count is None:
        return 0
    return 255 - count


def render_band(
    pixels: np.ndarray,
    bounds: ImageBounds,
    upper_left: complex,
    lower_right: complex,
    limit: int = ITERATION_LIMIT,
    rows: Optional[range] = None,
) -> None:
    """Fill ``pixels`` with the grayscale rendering of one band.

    ``pixels`` is a flat row-major view holding exactly the band's pixels.
    Without ``rows`` the band is the whole of ``bounds`` and
    ``upper_left``/``lower_right`` are its own corners. With ``rows`` the
    geometry is that of the whole image and only those rows are rendered, so
    every pixel maps to the same point whichever band it falls in.
    """

    if rows is None:
        rows = range(bounds.height)
    assert len(pixels) == bounds.width * len(rows)

    for offset, row in enumerate(rows):
        for column in range(bounds.width):
            point = pixel_to_point(bounds, (column, row), upper_left, lower_right)
            pixels[offset * bounds.width + column] = intensity(escape_time(point, limit))
