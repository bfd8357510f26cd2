"""Vectorized band renderer iterating a whole band at once with TensorFlow."""

from __future__ import annotations

from typing import Optional

import numpy as np
import tensorflow as tf

from .geometry import ImageBounds
from .renderer import HORIZON, ITERATION_LIMIT

# Grappler may reassociate the elementwise products below, which would change
# the rounding relative to the scalar renderer.
tf.config.optimizer.set_experimental_options({"arithmetic_optimization": False})


@tf.function
def _escape_step(
    zr: tf.Tensor,
    zi: tf.Tensor,
    cr: tf.Tensor,
    ci: tf.Tensor,
    counts: tf.Tensor,
    active: tf.Tensor,
    i: tf.Tensor,
) -> tuple[tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor]:
    """Advance every point that has not escaped by one iteration."""

    # Same operation order as complex multiplication in the scalar renderer.
    next_zr = zr * zr - zi * zi + cr
    next_zi = zr * zi + zi * zr + ci
    zr = tf.where(active, next_zr, zr)
    zi = tf.where(active, next_zi, zi)
    horizon = tf.constant(HORIZON, dtype=zr.dtype)
    escaped = tf.logical_and(active, zr * zr + zi * zi > horizon)
    counts = tf.where(escaped, i, counts)
    active = tf.logical_and(active, tf.logical_not(escaped))
    return zr, zi, counts, active


@tf.function
def _escape_run(cr: tf.Tensor, ci: tf.Tensor, limit: tf.Tensor) -> tf.Tensor:
    """Return the escape iteration of every point, or -1 for bounded orbits."""

    limit = tf.cast(limit, tf.int32)
    i = tf.constant(0, dtype=tf.int32)
    zr = tf.zeros_like(cr)
    zi = tf.zeros_like(ci)
    counts = tf.fill(tf.shape(cr), tf.constant(-1, dtype=tf.int32))
    active = tf.ones_like(counts, tf.bool)

    def cond(i, zr, zi, counts, active):
        return tf.logical_and(tf.less(i, limit), tf.reduce_any(active))

    def body(i, zr, zi, counts, active):
        zr, zi, counts, active = _escape_step(zr, zi, cr, ci, counts, active, i)
        return i + 1, zr, zi, counts, active

    _, _, _, counts, _ = tf.while_loop(cond, body, (i, zr, zi, counts, active))
    return counts


def band_points(
    bounds: ImageBounds,
    upper_left: complex,
    lower_right: complex,
    rows: Optional[range] = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Real and imaginary parts of every pixel of a band, shaped ``(len(rows), width)``."""

    if rows is None:
        rows = range(bounds.height)
    width = np.float64(lower_right.real - upper_left.real)
    height = np.float64(upper_left.imag - lower_right.imag)
    columns = np.arange(bounds.width, dtype=np.float64)
    row_indices = np.arange(rows.start, rows.stop, dtype=np.float64)
    re = np.float64(upper_left.real) + columns * width / np.float64(bounds.width)
    im = np.float64(upper_left.imag) - row_indices * height / np.float64(bounds.height)
    shape = (len(rows), bounds.width)
    return np.broadcast_to(re[np.newaxis, :], shape), np.broadcast_to(im[:, np.newaxis], shape)


def render_band_tensor(
    pixels: np.ndarray,
    bounds: ImageBounds,
    upper_left: complex,
    lower_right: complex,
    limit: int = ITERATION_LIMIT,
    rows: Optional[range] = None,
    *,
    device: Optional[str] = None,
) -> None:
    """Drop-in replacement for :func:`mandelbands.renderer.render_band`."""

    if rows is None:
        rows = range(bounds.height)
    assert len(pixels) == bounds.width * len(rows)

    if len(rows) == 0:
        return

    re, im = band_points(bounds, upper_left, lower_right, rows)

    with tf.device(device if device is not None else "/CPU:0"):
        cr = tf.convert_to_tensor(re, dtype=tf.float64)
        ci = tf.convert_to_tensor(im, dtype=tf.float64)
        counts = _escape_run(cr, ci, tf.constant(limit, dtype=tf.int32)).numpy()

    shades = np.where(counts < 0, 0, 255 - counts)
    pixels[:] = shades.astype(np.uint8).ravel()
