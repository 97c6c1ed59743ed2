"""Airy disc light spot renderer.

Synthesizes 16-bit grayscale images of point-like light sources with
sub-pixel positional precision.

Modules:
    - pattern: Airy disc intensity lookup table
    - shape: spot shape matrices and the canvas view transform
    - canvas: spot registry and rasterizer
    - gamma: 8-bit sRGB gamma compression
    - export: windows, subsampling, RAW/PNG encoders
    - scene: scene config -> canvas, frame sequences

Invariants:
    - Pixel values are linear light, 0..PIXEL_MAX
    - Spot accumulation is additive and saturating
    - Rendering is deterministic and CPU only
"""

from .canvas import PIXEL_MAX, BoundingBox, Canvas, SpotRecord
from .export import EncoderError, ImageFormat, Window
from .gamma import GammaCurve8
from .pattern import SIZE_FACTOR, PatternTable
from .shape import SpotShape, Transform
from . import scene

__all__ = [
    'PIXEL_MAX',
    'SIZE_FACTOR',
    'BoundingBox',
    'Canvas',
    'EncoderError',
    'GammaCurve8',
    'ImageFormat',
    'PatternTable',
    'SpotRecord',
    'SpotShape',
    'Transform',
    'Window',
    'scene',
]
