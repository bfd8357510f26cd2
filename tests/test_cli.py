import numpy as np
import PIL.Image
import pytest

import mandel
from mandelbands import ImageBounds, render


def _run(*argv):
    return mandel.main([str(arg) for arg in argv])


def test_writes_grayscale_png(tmp_path):
    output = tmp_path / "mandel.png"
    _run(output, "40x30", "--workers", "3", "--", "-1.20,0.35", "-1,0.20")

    with PIL.Image.open(output) as image:
        assert image.format == "PNG"
        assert image.mode == "L"
        assert image.size == (40, 30)
        written = np.asarray(image).ravel()

    expected = render(ImageBounds(40, 30), complex(-1.20, 0.35), complex(-1.0, 0.20), workers=3)
    np.testing.assert_array_equal(written, expected)


def test_creates_missing_directories(tmp_path):
    output = tmp_path / "nested" / "dir" / "out.png"
    _run(output, "8x8", "--", "-2,1", "0,-1")
    assert output.exists()


def test_colormap_keeps_set_black(tmp_path):
    output = tmp_path / "color.png"
    _run(output, "16x16", "--colormap", "magma", "--", "-2,1", "0,-1")

    with PIL.Image.open(output) as image:
        assert image.mode == "RGB"
        rgb = np.asarray(image).reshape(-1, 3)

    shades = render(ImageBounds(16, 16), complex(-2.0, 1.0), complex(0.0, -1.0))
    assert (shades == 0).any()
    assert not rgb[shades == 0].any()


def test_format_option(tmp_path):
    output = tmp_path / "out.img"
    _run(output, "8x8", "--format", "bmp", "--", "-2,1", "0,-1")
    with PIL.Image.open(output) as image:
        assert image.format == "BMP"


def test_verbose_prints_band_layout(tmp_path, capsys):
    _run(tmp_path / "out.png", "8x10", "-v", "--workers", "4", "--", "-2,1", "0,-1")
    out = capsys.readouterr().out
    assert "band 0: rows 0-3 (3 rows)" in out
    assert "band 3: rows 9-10 (1 rows)" in out


def test_quiet_by_default(tmp_path, capsys):
    _run(tmp_path / "out.png", "8x8", "--", "-2,1", "0,-1")
    assert capsys.readouterr().out == ""


@pytest.mark.parametrize(
    "argv",
    [
        ["out.png", "40by30", "--", "-1.20,0.35", "-1,0.20"],
        ["out.png", "0x30", "--", "-1.20,0.35", "-1,0.20"],
        ["out.png", "40x30", "--", "-1.20;0.35", "-1,0.20"],
        ["out.png", "40x30", "--", "-1,0.20", "-1.20,0.35"],
        ["out.png", "40x30", "--workers", "0", "--", "-1.20,0.35", "-1,0.20"],
        ["out.png", "40x30", "--limit", "300", "--", "-1.20,0.35", "-1,0.20"],
        ["out.png", "40x30", "--band-policy", "floor", "--", "-1.20,0.35", "-1,0.20"],
        ["out.png", "40x30", "--colormap", "no-such-map", "--", "-1.20,0.35", "-1,0.20"],
        ["out.png", "40x30"],
    ],
)
def test_bad_arguments_exit_with_usage_error(tmp_path, argv):
    argv[0] = str(tmp_path / argv[0])
    with pytest.raises(SystemExit) as excinfo:
        mandel.main(argv)
    assert excinfo.value.code == 2
    assert not (tmp_path / "out.png").exists()


def test_write_failure_exits_with_status_one(tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        _run(tmp_path, "8x8", "--", "-2,1", "0,-1")
    assert excinfo.value.code == 1
    assert "error writing" in capsys.readouterr().err


def test_write_image_wraps_encoder_errors(tmp_path):
    pixels = np.zeros(4, dtype=np.uint8)
    with pytest.raises(mandel.ImageWriteError):
        mandel.write_image(tmp_path / "out.xyz", pixels, ImageBounds(2, 2), image_format="no-such-format")


def test_colorize_grayscale_shape():
    pixels = np.arange(6, dtype=np.uint8)
    image = mandel.colorize(pixels, ImageBounds(3, 2))
    assert image.size == (3, 2)
    assert image.getpixel((2, 1)) == 5


def test_band_mapping_option(tmp_path):
    output = tmp_path / "band.png"
    _run(output, "60x45", "--workers", "4", "--mapping", "band", "--", "-2,1.2", "0.6,-1.2")

    with PIL.Image.open(output) as image:
        written = np.asarray(image).ravel()

    expected = render(
        ImageBounds(60, 45), complex(-2.0, 1.2), complex(0.6, -1.2), workers=4, mapping="band"
    )
    np.testing.assert_array_equal(written, expected)


def test_tensorflow_messages_follow_verbose_flag(monkeypatch):
    monkeypatch.delenv("TF_CPP_MIN_LOG_LEVEL", raising=False)
    assert mandel._suppress_tensorflow_messages(True) is False
    assert "TF_CPP_MIN_LOG_LEVEL" not in mandel.os.environ

    assert mandel._suppress_tensorflow_messages(False) is True
    assert mandel.os.environ["TF_CPP_MIN_LOG_LEVEL"] == "3"

    monkeypatch.setenv("TF_CPP_MIN_LOG_LEVEL", "0")
    assert mandel._suppress_tensorflow_messages(False) is False


class _StopBeforeRender(Exception):
    pass


@pytest.mark.parametrize("verbose, suppress", [(True, False), (False, True)])
def test_main_passes_verbose_to_tensorflow_logging(tmp_path, monkeypatch, verbose, suppress):
    monkeypatch.delenv("TF_CPP_MIN_LOG_LEVEL", raising=False)
    seen = []

    def record(flag):
        seen.append(flag)
        raise _StopBeforeRender

    monkeypatch.setattr(mandel, "_quiet_tensorflow", record)
    argv = [tmp_path / "out.png", "8x8", "--engine", "tensor"]
    if verbose:
        argv.append("-v")
    with pytest.raises(_StopBeforeRender):
        _run(*argv, "--", "-2,1", "0,-1")
    assert seen == [suppress]
