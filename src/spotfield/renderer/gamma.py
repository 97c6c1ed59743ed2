"""sRGB gamma compression curve with 8-bit output.

Used only by the 8-bit export formats; the canvas itself stores linear light
16-bit samples.
"""

from typing import Union

import numpy as np

# LUT resolution in bits; 16-bit samples are shifted down to this many bits
LUT_BITS = 12


def srgb_compress(x: np.ndarray) -> np.ndarray:
    """sRGB gamma curve for linear light values in [0, 1]."""
    x = np.asarray(x, dtype=np.float64)
    return np.where(
        x <= 0.0031308,
        12.92 * x,
        1.055 * np.power(x, 1.0 / 2.4) - 0.055,
    )


class GammaCurve8:
    """16-bit linear light -> 8-bit sRGB grayscale LUT.

    Attributes
    ----------
    lut : np.ndarray
        Read-only uint8 table, shape (2**LUT_BITS,)
    """

    def __init__(self):
        size = 1 << LUT_BITS
        x = np.arange(size, dtype=np.float64) / (size - 1)
        lut = np.floor(srgb_compress(x) * 255.0 + 0.5).astype(np.uint8)
        lut.flags.writeable = False
        self.lut = lut

    def transform(self, samples: Union[int, np.ndarray]) -> Union[int, np.ndarray]:
        """Convert 16-bit linear samples into 8-bit gamma-compressed samples.

        Parameters
        ----------
        samples : int or np.ndarray
            Linear light samples in [0, 65535]

        Returns
        -------
        int or np.ndarray
            uint8 samples, same shape as input
        """
        idx = np.asarray(samples, dtype=np.uint16) >> (16 - LUT_BITS)
        out = self.lut[idx]
        if out.ndim == 0:
            return int(out)
        return out


_default_curve = None


def default_curve() -> GammaCurve8:
    """Shared gamma curve instance, built on first use."""
    global _default_curve
    if _default_curve is None:
        _default_curve = GammaCurve8()
    return _default_curve
