"""Canvas image export: windows, subsampling, RAW and PNG encoders.

Encoders take the canvas image as a (height, width) uint16 array of linear
light samples and return the encoded bytes. Nothing here writes files; use
spotfield.utils.fs for atomic writes.

Formats:
    - RAW_GAMMA_8BPP:      8-bit sRGB gamma-compressed grayscale, one byte per pixel
    - RAW_LINEAR_10BPP_LE: 10-bit linear light, little-endian 16-bit words
    - RAW_LINEAR_12BPP_LE: 12-bit linear light, little-endian 16-bit words
    - PNG_GAMMA_8BPP:      8-bit grayscale PNG, gAMA = 1/2.2
    - PNG_LINEAR_16BPP:    16-bit grayscale PNG, gAMA = 1.0

Usage:
    from spotfield.renderer.export import ImageFormat, Window, export_window

    wnd = Window.new(32, 16).at(90, 140)
    data = export_window(canvas.image(), wnd, ImageFormat.PNG_LINEAR_16BPP)
"""

import io
import logging
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

import numpy as np
from PIL import Image, PngImagePlugin

from .gamma import default_curve

logger = logging.getLogger(__name__)

# PNG gAMA chunk values (gamma * 100000)
PNG_GAMMA_SRGB = 45455
PNG_GAMMA_LINEAR = 100000


class EncoderError(ValueError):
    """Raised when an image can not be exported as requested."""


class ImageFormat(Enum):
    """Exportable canvas image formats."""

    RAW_GAMMA_8BPP = "raw_gamma_8bpp"
    RAW_LINEAR_10BPP_LE = "raw_linear_10bpp_le"
    RAW_LINEAR_12BPP_LE = "raw_linear_12bpp_le"
    PNG_GAMMA_8BPP = "png_gamma_8bpp"
    PNG_LINEAR_16BPP = "png_linear_16bpp"

    @classmethod
    def parse(cls, value: Union[str, 'ImageFormat']) -> 'ImageFormat':
        """Parse a format from its lowercase name (e.g. "png_linear_16bpp")."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            allowed = [f.value for f in cls]
            raise EncoderError(f"Unknown image format '{value}', expected one of {allowed}") from None

    @property
    def extension(self) -> str:
        return ".png" if self.value.startswith("png") else ".raw"


@dataclass(frozen=True)
class Window:
    """Rectangular canvas window, origin at its upper left corner."""

    x: int
    y: int
    w: int
    h: int

    @classmethod
    def new(cls, width: int, height: int) -> 'Window':
        """Window of the given dimensions located at the canvas origin."""
        return cls(0, 0, width, height)

    @classmethod
    def from_tuple(cls, value: Tuple[Tuple[int, int], Tuple[int, int]]) -> 'Window':
        """Window from ((x, y), (w, h))."""
        (x, y), (w, h) = value
        return cls(x, y, w, h)

    def at(self, x: int, y: int) -> 'Window':
        """Move the window origin to (x, y)."""
        return Window(x, y, self.w, self.h)

    def is_inside(self, width: int, height: int) -> bool:
        return (
            self.x >= 0 and self.y >= 0
            and self.x + self.w <= width
            and self.y + self.h <= height
        )

    def len(self) -> int:
        """Total number of pixels in the window."""
        return self.w * self.h

    def __str__(self) -> str:
        return f"({self.x}, {self.y})+({self.w}, {self.h})"


def encode(image: np.ndarray, fmt: ImageFormat) -> bytes:
    """Encode a (H, W) uint16 linear light image in the requested format."""
    fmt = ImageFormat.parse(fmt)
    image = np.ascontiguousarray(image, dtype=np.uint16)

    if fmt is ImageFormat.RAW_GAMMA_8BPP:
        return default_curve().transform(image).tobytes()
    if fmt is ImageFormat.RAW_LINEAR_10BPP_LE:
        return _encode_raw_linear(image, 10)
    if fmt is ImageFormat.RAW_LINEAR_12BPP_LE:
        return _encode_raw_linear(image, 12)
    if fmt is ImageFormat.PNG_GAMMA_8BPP:
        return _encode_png(default_curve().transform(image), PNG_GAMMA_SRGB)
    if fmt is ImageFormat.PNG_LINEAR_16BPP:
        return _encode_png(image, PNG_GAMMA_LINEAR)

    raise EncoderError(f"Image format {fmt} not implemented")


def _encode_raw_linear(image: np.ndarray, bits: int) -> bytes:
    """Pack samples as `bits`-bit values in little-endian 16-bit words."""
    if not 9 <= bits <= 16:
        raise EncoderError(f"RAW linear bit depth must be in [9, 16], got {bits}")
    return (image >> (16 - bits)).astype('<u2').tobytes()


def _encode_png(image: np.ndarray, gamma: int) -> bytes:
    """Encode an 8-bit or 16-bit grayscale PNG with a gAMA chunk."""
    h, w = image.shape
    if h == 0 or w == 0:
        raise EncoderError(f"Can not encode an empty {w}x{h} image as PNG")

    if image.dtype == np.uint8:
        pil_img = Image.fromarray(image)
    else:
        pil_img = Image.frombytes("I;16", (w, h), image.astype('<u2').tobytes())

    info = PngImagePlugin.PngInfo()
    info.add(b"gAMA", struct.pack(">I", gamma))

    buf = io.BytesIO()
    pil_img.save(buf, format="PNG", pnginfo=info)
    return buf.getvalue()


def export_full(image: np.ndarray, fmt: ImageFormat) -> bytes:
    """Export the whole canvas image."""
    return encode(image, fmt)


def export_window(image: np.ndarray, window: Window, fmt: ImageFormat) -> bytes:
    """Export a rectangular window of the canvas image.

    Raises
    ------
    EncoderError
        If the window is not entirely inside the canvas
    """
    height, width = image.shape
    if not window.is_inside(width, height):
        raise EncoderError(f"Window {window} is outside the {width}x{height} canvas")

    roi = image[window.y:window.y + window.h, window.x:window.x + window.w]
    return encode(roi, fmt)


def export_subsampled(image: np.ndarray, factors: Tuple[int, int], fmt: ImageFormat) -> bytes:
    """Export the canvas image subsampled by integer (X, Y) factors.

    Every fx-th column and fy-th row is kept; the result has
    (height // fy, width // fx) pixels.
    """
    fx, fy = factors
    if fx < 1 or fy < 1:
        raise EncoderError(f"Subsampling factors must be >= 1, got {factors}")

    height, width = image.shape
    sub = image[:(height // fy) * fy:fy, :(width // fx) * fx:fx]
    logger.debug(f"Subsampled {width}x{height} by {fx}x{fy} -> {sub.shape[1]}x{sub.shape[0]}")
    return encode(sub, fmt)
