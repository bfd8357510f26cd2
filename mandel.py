import os
import time
from argparse import ArgumentParser, ArgumentTypeError
from pathlib import Path
from typing import Optional

import numpy as np
import PIL.Image
from matplotlib import colormaps as _mpl_colormaps

from mandelbands import (
    DEFAULT_WORKERS,
    ITERATION_LIMIT,
    ImageBounds,
    RenderSettings,
    Viewport,
    parse_bounds,
    parse_complex,
    plan_bands,
)
from mandelbands.bands import ENGINES, MAPPINGS, POLICIES

VERBOSE = False


def log(message, *args, **kwargs):
    if VERBOSE:
        print(message, *args, **kwargs)


class ImageWriteError(Exception):
    """The rendered image could not be encoded or saved."""


def get_colormap(name):
    return _mpl_colormaps[name]


def _bounds_arg(text: str) -> ImageBounds:
    bounds = parse_bounds(text)
    if bounds is None:
        raise ArgumentTypeError(f"invalid image dimensions '{text}', expected WIDTHxHEIGHT")
    return bounds


def _complex_arg(text: str) -> complex:
    point = parse_complex(text)
    if point is None:
        raise ArgumentTypeError(f"invalid complex point '{text}', expected RE,IM")
    return point


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise ArgumentTypeError(f"invalid integer '{text}'") from None
    if value < 1:
        raise ArgumentTypeError(f"must be a positive integer, got {value}")
    return value


def build_parser():
    parser = ArgumentParser(
        prog="mandel",
        description="Render a grayscale Mandelbrot image with one thread per horizontal band.",
        epilog="Example: mandel mandel.png 1000x750 -- -1.20,0.35 -1,0.20 "
               "(use -- so that negative coordinates are not read as options)",
    )

    parser.add_argument('output', type=str, metavar='FILE',
                        help='image file to write')

    parser.add_argument('bounds', type=_bounds_arg, metavar='PIXELS',
                        help='image size in pixels, e.g. 1000x750')

    parser.add_argument('upper_left', type=_complex_arg, metavar='UPPERLEFT',
                        help='complex point at the upper-left corner, e.g. -1.20,0.35')

    parser.add_argument('lower_right', type=_complex_arg, metavar='LOWERRIGHT',
                        help='complex point at the lower-right corner, e.g. -1,0.20')

    parser.add_argument('--workers', type=_positive_int,
                        dest='workers', help='number of bands rendered concurrently (only the tensor engine runs them in parallel)',
                        metavar='WORKERS', default=DEFAULT_WORKERS)

    parser.add_argument('--limit', type=_positive_int,
                        dest='limit', help='maximum number of iterations per point (at most 256)',
                        metavar='LIMIT', default=ITERATION_LIMIT)

    parser.add_argument('--band-policy', choices=POLICIES, default='ceil', dest='policy',
                        help='rows per band: "ceil" splits evenly, "legacy" uses height // workers + 1')

    parser.add_argument('--mapping', choices=MAPPINGS, default='image',
                        help='pixel geometry: "image" maps every pixel through the whole viewport so the '
                             'output does not depend on --workers, "band" maps through each band\'s own '
                             'corners')

    parser.add_argument('--engine', choices=ENGINES, default='python',
                        help='band renderer: "python" iterates per pixel, "tensor" iterates whole bands '
                             'with TensorFlow (requires the tensor extra)')

    parser.add_argument('--colormap', type=str,
                        dest='colormap', help='matplotlib colormap to colorize the image (e.g. "magma"); '
                                              'grayscale when omitted',
                        metavar='COLORMAP', default=None)

    parser.add_argument('--format', type=str,
                        dest='format', help='file format, any supported by Pillow. Defaults to the '
                                            'extension of FILE, or png.',
                        metavar='FORMAT', default=None)

    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Print band layout and timings.')

    return parser


def _pil_format_name(ext: str) -> str:
    upper = ext.upper()
    if upper == "JPG":
        return "JPEG"
    if upper == "TIF":
        return "TIFF"
    return upper


def _resolve_format(output_path: Path, image_format: Optional[str]) -> str:
    if image_format:
        return image_format.lower().lstrip(".")
    return output_path.suffix.lower().lstrip(".") or "png"


def colorize(pixels: np.ndarray, bounds: ImageBounds, colormap: Optional[str] = None) -> PIL.Image.Image:
    """Build an image from a rendered buffer.

    Without a colormap the buffer becomes an 8-bit grayscale image. With one,
    escaped points are colored by intensity and points inside the set stay
    black.
    """

    shades = pixels.reshape(bounds.height, bounds.width)
    if colormap is None:
        return PIL.Image.fromarray(shades)

    cmap = get_colormap(colormap)
    rgba = np.array(cmap(shades.astype(np.float64) / 255.0), copy=True)
    inside = shades == 0
    for k in (0, 1, 2):
        rgba[..., k] = np.where(inside, 0.0, rgba[..., k])
    rgb_uint8 = np.uint8(np.clip(rgba[..., :3] * 255, 0, 255))
    return PIL.Image.fromarray(rgb_uint8)


def write_image(
    output_path: Path,
    pixels: np.ndarray,
    bounds: ImageBounds,
    image_format: str = "png",
    colormap: Optional[str] = None,
) -> None:
    """Encode ``pixels`` and write them to ``output_path``."""

    image = colorize(pixels, bounds, colormap)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        image.save(str(output_path), format=_pil_format_name(image_format))
    except (OSError, ValueError, KeyError) as exc:
        raise ImageWriteError(f"error writing {output_path}: {exc}") from exc


def _suppress_tensorflow_messages(verbose: bool) -> bool:
    """Decide whether TensorFlow output is silenced.

    Must run before TensorFlow is imported; its C++ logging reads
    ``TF_CPP_MIN_LOG_LEVEL`` once.
    """

    env_log_level = os.environ.get("TF_CPP_MIN_LOG_LEVEL")
    suppress = (not verbose) and env_log_level != "0"
    if suppress and env_log_level is None:
        os.environ["TF_CPP_MIN_LOG_LEVEL"] = "3"
    return suppress


def _quiet_tensorflow(suppress: bool):
    import tensorflow as tf

    log("TensorFlow version: %s" % tf.__version__)
    if suppress:
        tf.get_logger().setLevel("ERROR")
        for handler in tf.get_logger().handlers:
            handler.setLevel("ERROR")


def main(argv=None):
    parser = build_parser()
    opt = parser.parse_args(argv)

    global VERBOSE
    VERBOSE = bool(opt.verbose)

    try:
        viewport = Viewport(opt.upper_left, opt.lower_right)
    except ValueError as exc:
        parser.error(str(exc))

    if opt.limit > 256:
        parser.error(f"--limit must be at most 256, got {opt.limit}")

    if opt.colormap is not None and opt.colormap not in _mpl_colormaps:
        parser.error(f"Unknown colormap '{opt.colormap}'.")

    if opt.engine == "tensor":
        _quiet_tensorflow(_suppress_tensorflow_messages(opt.verbose))

    settings = RenderSettings(
        workers=opt.workers,
        limit=opt.limit,
        policy=opt.policy,
        engine=opt.engine,
        mapping=opt.mapping,
    )
    bounds = opt.bounds

    for band in plan_bands(bounds.height, settings.workers, settings.policy):
        log("band {0}: rows {1}-{2} ({3} rows)".format(band.index, band.top, band.top + band.height, band.height))

    start = time.perf_counter()
    pixels = settings.render(bounds, viewport)
    log("rendered {0}x{1} pixels in {2:.3f}s".format(bounds.width, bounds.height, time.perf_counter() - start))

    output_path = Path(opt.output).expanduser()
    image_format = _resolve_format(output_path, opt.format)
    try:
        write_image(output_path, pixels, bounds, image_format, opt.colormap)
    except ImageWriteError as exc:
        parser.exit(1, f"{parser.prog}: {exc}\n")
    log("wrote %s" % output_path)


if __name__ == '__main__':
    main()
