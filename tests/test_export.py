"""Tests for windows, subsampling and the RAW/PNG encoders.

PNG output is decoded back with Pillow to check pixel data and the gAMA
chunk.
"""

import io

import numpy as np
import pytest
from PIL import Image

from spotfield.renderer.export import (
    PNG_GAMMA_LINEAR,
    PNG_GAMMA_SRGB,
    EncoderError,
    ImageFormat,
    Window,
    encode,
    export_full,
    export_subsampled,
    export_window,
)
from spotfield.renderer.gamma import default_curve


@pytest.fixture
def ramp():
    """3x4 uint16 ramp image."""
    return (np.arange(12, dtype=np.uint16) * 5000).reshape(3, 4)


def decode_png(data: bytes):
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


# ============================================================================
# WINDOW
# ============================================================================

def test_window_new_at_origin():
    wnd = Window.new(32, 16)
    assert (wnd.x, wnd.y, wnd.w, wnd.h) == (0, 0, 32, 16)
    assert wnd.len() == 512


def test_window_at():
    wnd = Window.new(32, 16).at(90, 140)
    assert (wnd.x, wnd.y, wnd.w, wnd.h) == (90, 140, 32, 16)


def test_window_from_tuple():
    assert Window.from_tuple(((1, 2), (3, 4))) == Window(1, 2, 3, 4)


def test_window_str():
    assert str(Window.new(32, 16).at(90, 140)) == "(90, 140)+(32, 16)"


@pytest.mark.parametrize("wnd,inside", [
    (Window(0, 0, 4, 3), True),
    (Window(2, 1, 2, 2), True),
    (Window(3, 0, 2, 1), False),
    (Window(0, 2, 1, 2), False),
    (Window(-1, 0, 1, 1), False),
])
def test_window_is_inside(wnd, inside):
    assert wnd.is_inside(4, 3) is inside


# ============================================================================
# IMAGE FORMAT
# ============================================================================

def test_format_parse():
    assert ImageFormat.parse("png_linear_16bpp") is ImageFormat.PNG_LINEAR_16BPP
    assert ImageFormat.parse("RAW_GAMMA_8BPP") is ImageFormat.RAW_GAMMA_8BPP
    assert ImageFormat.parse(ImageFormat.PNG_GAMMA_8BPP) is ImageFormat.PNG_GAMMA_8BPP


def test_format_parse_unknown():
    with pytest.raises(EncoderError, match="Unknown image format"):
        ImageFormat.parse("bmp")


def test_encoder_error_is_value_error():
    assert issubclass(EncoderError, ValueError)


def test_format_extension():
    assert ImageFormat.PNG_GAMMA_8BPP.extension == ".png"
    assert ImageFormat.RAW_LINEAR_12BPP_LE.extension == ".raw"


# ============================================================================
# RAW
# ============================================================================

def test_raw_gamma_8bpp(ramp):
    data = encode(ramp, ImageFormat.RAW_GAMMA_8BPP)
    assert len(data) == 12
    np.testing.assert_array_equal(
        np.frombuffer(data, dtype=np.uint8), default_curve().transform(ramp).ravel()
    )


@pytest.mark.parametrize("fmt,bits", [
    (ImageFormat.RAW_LINEAR_10BPP_LE, 10),
    (ImageFormat.RAW_LINEAR_12BPP_LE, 12),
])
def test_raw_linear(ramp, fmt, bits):
    data = encode(ramp, fmt)
    assert len(data) == 24
    words = np.frombuffer(data, dtype='<u2')
    np.testing.assert_array_equal(words, ramp.ravel() >> (16 - bits))
    assert words.max() < (1 << bits)


def test_raw_linear_little_endian():
    image = np.full((1, 1), 0xFFFF, dtype=np.uint16)
    assert encode(image, ImageFormat.RAW_LINEAR_12BPP_LE) == b"\xff\x0f"
    assert encode(image, ImageFormat.RAW_LINEAR_10BPP_LE) == b"\xff\x03"


def test_raw_empty_image():
    assert encode(np.zeros((0, 5), dtype=np.uint16), ImageFormat.RAW_GAMMA_8BPP) == b""


# ============================================================================
# PNG
# ============================================================================

def test_png_linear_16bpp_roundtrip(ramp):
    img = decode_png(encode(ramp, ImageFormat.PNG_LINEAR_16BPP))
    assert img.size == (4, 3)
    np.testing.assert_array_equal(np.array(img).astype(np.uint16), ramp)
    assert img.info["gamma"] == pytest.approx(PNG_GAMMA_LINEAR / 100000.0)


def test_png_gamma_8bpp_roundtrip(ramp):
    img = decode_png(encode(ramp, ImageFormat.PNG_GAMMA_8BPP))
    assert img.mode == "L"
    assert img.size == (4, 3)
    np.testing.assert_array_equal(np.array(img), default_curve().transform(ramp))
    assert img.info["gamma"] == pytest.approx(PNG_GAMMA_SRGB / 100000.0)


def test_png_empty_image_rejected():
    with pytest.raises(EncoderError, match="empty"):
        encode(np.zeros((0, 0), dtype=np.uint16), ImageFormat.PNG_LINEAR_16BPP)


# ============================================================================
# WINDOWS & SUBSAMPLING
# ============================================================================

def test_export_full_matches_encode(ramp):
    fmt = ImageFormat.RAW_LINEAR_12BPP_LE
    assert export_full(ramp, fmt) == encode(ramp, fmt)


def test_export_window(ramp):
    data = export_window(ramp, Window(1, 1, 2, 2), ImageFormat.RAW_LINEAR_12BPP_LE)
    words = np.frombuffer(data, dtype='<u2')
    np.testing.assert_array_equal(words, ramp[1:3, 1:3].ravel() >> 4)


def test_export_window_outside(ramp):
    with pytest.raises(EncoderError, match="outside"):
        export_window(ramp, Window(3, 0, 2, 1), ImageFormat.RAW_GAMMA_8BPP)


def test_export_window_png(ramp):
    img = decode_png(export_window(ramp, Window(0, 1, 3, 2), ImageFormat.PNG_LINEAR_16BPP))
    assert img.size == (3, 2)


@pytest.mark.parametrize("factors,shape", [
    ((1, 1), (3, 4)),
    ((2, 1), (3, 2)),
    ((3, 2), (1, 1)),
    ((4, 3), (1, 1)),
    ((5, 1), (3, 0)),
])
def test_export_subsampled_dimensions(ramp, factors, shape):
    data = export_subsampled(ramp, factors, ImageFormat.RAW_GAMMA_8BPP)
    assert len(data) == shape[0] * shape[1]


def test_export_subsampled_takes_every_nth(ramp):
    data = export_subsampled(ramp, (2, 2), ImageFormat.RAW_LINEAR_12BPP_LE)
    words = np.frombuffer(data, dtype='<u2')
    np.testing.assert_array_equal(words, ramp[0:1:2, 0:4:2].ravel() >> 4)


@pytest.mark.parametrize("factors", [(0, 1), (1, 0), (-2, 2)])
def test_export_subsampled_invalid(ramp, factors):
    with pytest.raises(EncoderError, match=">= 1"):
        export_subsampled(ramp, factors, ImageFormat.RAW_GAMMA_8BPP)
