"""spotfield: sub-pixel light spot (star field) image synthesis.

Convenience imports:
    from spotfield import Canvas, SpotShape, Transform, ImageFormat
"""

__version__ = "0.3.0"

from .renderer import (
    Canvas,
    EncoderError,
    ImageFormat,
    PatternTable,
    SpotShape,
    Transform,
    Window,
)

__all__ = [
    'Canvas',
    'EncoderError',
    'ImageFormat',
    'PatternTable',
    'SpotShape',
    'Transform',
    'Window',
    '__version__',
]
