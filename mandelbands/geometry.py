"""Image bounds, viewports and the pixel to complex-plane mapping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ImageBounds:
    """Size of a pixel grid. A band at the tail of an image may have no rows."""

    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0:
            raise ValueError(f"image width must be positive, got {self.width}")
        if self.height < 0:
            raise ValueError(f"image height must not be negative, got {self.height}")

    @property
    def pixel_count(self) -> int:
        return self.width * self.height


@dataclass(frozen=True)
class Viewport:
    """Rectangle of the complex plane covered by an image."""

    upper_left: complex
    lower_right: complex

    def __post_init__(self) -> None:
        if not self.upper_left.real < self.lower_right.real:
            raise ValueError(
                f"upper-left real part {self.upper_left.real} must be less than "
                f"lower-right real part {self.lower_right.real}"
            )
        if not self.upper_left.imag > self.lower_right.imag:
            raise ValueError(
                f"upper-left imaginary part {self.upper_left.imag} must be greater than "
                f"lower-right imaginary part {self.lower_right.imag}"
            )


def pixel_to_point(
    bounds: ImageBounds,
    pixel: tuple[int, int],
    upper_left: complex,
    lower_right: complex,
) -> complex:
    """Return the point of the complex plane under ``pixel``.

    ``pixel`` is a ``(column, row)`` pair. Either coordinate may equal the
    matching dimension of ``bounds`` so that the exclusive lower-right corner of
    a band can be computed.
    """

    column, row = pixel
    width = lower_right.real - upper_left.real
    height = upper_left.imag - lower_right.imag
    # Rows grow downward while the imaginary axis grows upward.
    return complex(
        upper_left.real + column * width / bounds.width,
        upper_left.imag - row * height / bounds.height,
    )


def parse_pair(text: str, separator: str, convert: Callable[[str], T]) -> Optional[tuple[T, T]]:
    """Parse ``"<left><separator><right>"`` with ``convert`` applied to each side.

    Returns ``None`` when the separator is missing or either side fails to
    convert.
    """

    index = text.find(separator)
    if index < 0:
        return None
    try:
        return convert(text[:index]), convert(text[index + 1:])
    except ValueError:
        return None


def parse_complex(text: str) -> Optional[complex]:
    pair = parse_pair(text, ",", float)
    if pair is None:
        return None
    re, im = pair
    return complex(re, im)


def parse_bounds(text: str) -> Optional[ImageBounds]:
    pair = parse_pair(text, "x", int)
    if pair is None:
        return None
    width, height = pair
    if width <= 0 or height <= 0:
        return None
    return ImageBounds(width, height)
