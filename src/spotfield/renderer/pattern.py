"""Airy disc intensity pattern lookup table.

The rasterizer evaluates the normalized Airy pattern

    f(r) = (2 * J1(r') / r')^2,    r' = r * J1_ZERO1

once per pixel. Evaluating the Bessel function that often is expensive, so
the pattern is sampled once into a float32 table and looked up with rounding
to the nearest entry.

Units:
    - Radius r is dimensionless: r = 1 is the first dark ring of the Airy
      disc (the diffraction radius of a unit spot shape)
    - The table covers r in [0, SIZE_FACTOR), SIZE_FACTOR being the radius
      of the second dark ring
    - Lookups beyond the table return 0.0 (the pattern is zero-extended)

Usage:
    from spotfield.renderer.pattern import PatternTable

    table = PatternTable()
    table.eval(0.0)                  # 1.0
    table.eval(np.array([0.5, 3.0]))  # array([0.35..., 0.0])
"""

import logging
from typing import Union

import numpy as np
from scipy.special import j1

logger = logging.getLogger(__name__)

# First positive zero of J1(x)
J1_ZERO1 = 3.831706

# Second positive zero of J1(x)
J1_ZERO2 = 7.015587

# Radius of the second dark ring in units of the first one
SIZE_FACTOR = J1_ZERO2 / J1_ZERO1

DEFAULT_TABLE_SIZE = 1024


def airy_intensity(x: np.ndarray) -> np.ndarray:
    """Evaluate the normalized Airy intensity (2*J1(x)/x)^2.

    Parameters
    ----------
    x : np.ndarray
        Airy function argument (not the normalized radius), x >= 0

    Returns
    -------
    np.ndarray
        Intensity in [0, 1]; the removable singularity at x = 0 evaluates to 1.0
    """
    x = np.asarray(x, dtype=np.float64)
    out = np.ones_like(x)
    nz = x != 0.0
    # J1(x) ~ x/2 as x -> 0
    j1nc = 2.0 * j1(x[nz]) / x[nz]
    out[nz] = j1nc * j1nc
    return out


class PatternTable:
    """Precomputed Airy pattern LUT indexed by normalized radius.

    Attributes
    ----------
    size : int
        Number of table entries
    index_scale : float
        Radius to table index scaling factor (size / SIZE_FACTOR)
    lut : np.ndarray
        Read-only float32 table, shape (size,)
    """

    def __init__(self, size: int = DEFAULT_TABLE_SIZE):
        if size < 2:
            raise ValueError(f"Pattern table size must be >= 2, got {size}")

        self.size = int(size)
        self.index_scale = self.size / SIZE_FACTOR

        args = np.arange(self.size, dtype=np.float64) * (J1_ZERO2 / self.size)
        lut = airy_intensity(args).astype(np.float32)
        lut.flags.writeable = False
        self.lut = lut

        logger.debug(
            f"PatternTable built: size={self.size}, "
            f"index_scale={self.index_scale:.4f}"
        )

    def index(self, r: Union[float, np.ndarray]) -> np.ndarray:
        """Map normalized radii to (unchecked) table indexes with rounding."""
        r = np.asarray(r, dtype=np.float64)
        with np.errstate(invalid='ignore'):
            scaled = np.floor(r * self.index_scale + 0.5)
        # Send negative and non-finite radii past the table end
        scaled = np.where(np.isfinite(scaled) & (scaled >= 0.0), scaled, self.size)
        return np.minimum(scaled, self.size).astype(np.int64)

    def eval(self, r: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
        """Look up the pattern intensity at normalized radius r.

        Parameters
        ----------
        r : float or np.ndarray
            Normalized radius (r = 1 at the first dark ring)

        Returns
        -------
        float or np.ndarray
            Pattern intensity in [0, 1]; 0.0 outside the table domain.
            Scalar input gives a Python float.
        """
        idx = self.index(r)
        inside = idx < self.size
        vals = np.where(inside, self.lut[np.where(inside, idx, 0)], np.float32(0.0))
        if vals.ndim == 0:
            return float(vals)
        return vals

    __call__ = eval

    def __len__(self) -> int:
        return self.size

    def __repr__(self) -> str:
        return f"PatternTable(size={self.size})"
