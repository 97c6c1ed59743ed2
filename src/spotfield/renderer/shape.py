"""Spot shape matrices and the canvas view transform.

A spot is a unit Airy disc deformed by a 2x2 shape matrix. The view transform
is an affine map applied to every spot position before rasterization; it never
touches the spot shape (ellipse orientation is defined in canvas space).

Conventions:
    - Canvas frame: origin at the top-left pixel, +X right, +Y down
    - Rotation angles in degrees, positive counter-clockwise in canvas coordinates
    - All operations are pure and return new values

Usage:
    from spotfield.renderer.shape import SpotShape, Transform

    shape = SpotShape().scale(4.5).stretch(1.7, 0.7).rotate(45.0)
    view = Transform().translate(10.0, 5.0).rotate(2.0)
    x, y = view.apply((100.6, 150.2))
"""

import logging
import math
import numbers
from dataclasses import dataclass
from typing import Sequence, Tuple, Union

from .pattern import SIZE_FACTOR

logger = logging.getLogger(__name__)

# Shape matrices with |det| below this are treated as singular
SINGULAR_DET_THRESHOLD = 0.01

Point = Tuple[float, float]
Vector = Tuple[float, float]


def _rotation(phi: float) -> Tuple[float, float]:
    """Return (cos, sin) of an angle given in degrees."""
    rad = math.radians(phi)
    return math.cos(rad), math.sin(rad)


@dataclass(frozen=True)
class SpotShape:
    """2x2 matrix mapping a unit circular spot onto an ellipse.

    Attributes
    ----------
    xx : float
        a11, X dimension
    xy : float
        a12, XY skew
    yx : float
        a21, YX skew
    yy : float
        a22, Y dimension
    """

    xx: float = 1.0
    xy: float = 0.0
    yx: float = 0.0
    yy: float = 1.0

    @classmethod
    def from_scalar(cls, k: float) -> 'SpotShape':
        """Isotropic shape scaled by k."""
        return cls(float(k), 0.0, 0.0, float(k))

    @classmethod
    def from_pair(cls, pair: Sequence[float]) -> 'SpotShape':
        """Shape stretched independently along X and Y."""
        kx, ky = pair
        return cls(float(kx), 0.0, 0.0, float(ky))

    @classmethod
    def from_matrix(cls, matrix: Sequence[Sequence[float]]) -> 'SpotShape':
        """Shape from a raw [[xx, xy], [yx, yy]] matrix."""
        (xx, xy), (yx, yy) = matrix
        return cls(float(xx), float(xy), float(yx), float(yy))

    @classmethod
    def from_value(cls, value: Union[float, Sequence]) -> 'SpotShape':
        """Build a shape from a scalar, an (x, y) pair or a 2x2 matrix."""
        if isinstance(value, SpotShape):
            return value
        if isinstance(value, numbers.Real):
            return cls.from_scalar(value)
        if len(value) == 2 and all(isinstance(v, numbers.Real) for v in value):
            return cls.from_pair(value)
        return cls.from_matrix(value)

    def scale(self, k: float) -> 'SpotShape':
        """Multiply all matrix entries by k."""
        return SpotShape(k * self.xx, k * self.xy, k * self.yx, k * self.yy)

    def stretch(self, kx: float, ky: float) -> 'SpotShape':
        """Scale the first row by kx and the second row by ky."""
        return SpotShape(kx * self.xx, kx * self.xy, ky * self.yx, ky * self.yy)

    def rotate(self, phi: float) -> 'SpotShape':
        """Rotate the spot by phi degrees (R * M)."""
        c, s = _rotation(phi)
        return SpotShape(
            c * self.xx - s * self.yx,
            c * self.xy - s * self.yy,
            s * self.xx + c * self.yx,
            s * self.xy + c * self.yy,
        )

    def determinant(self) -> float:
        return self.xx * self.yy - self.xy * self.yx

    def invert(self) -> 'SpotShape':
        """Invert the shape matrix.

        Returns
        -------
        SpotShape
            The inverse matrix, or the identity when the matrix is (almost)
            singular (|det| < SINGULAR_DET_THRESHOLD)

        Notes
        -----
        A singular shape is a caller defect, not a rendering fault: it is
        logged and the spot falls back to the unit circular shape.
        """
        det = self.determinant()
        if not abs(det) >= SINGULAR_DET_THRESHOLD:
            logger.warning(f"Singular shape matrix {self}, det={det:.6g}; using identity")
            return SpotShape()

        inv_det = 1.0 / det
        return SpotShape(
            inv_det * self.yy,
            -inv_det * self.xy,
            -inv_det * self.yx,
            inv_det * self.xx,
        )

    def apply(self, vec):
        """Transform a 2D vector (M . v).

        Components may be floats or equally shaped numpy arrays.
        """
        vx, vy = vec
        return (
            vx * self.xx + vy * self.xy,
            vy * self.yy + vx * self.yx,
        )

    def effective_radius_xy(self) -> Tuple[float, float]:
        """Spot radius at the second dark ring projected onto the X/Y axes.

        Used for bounding box sizing only.
        """
        return (
            SIZE_FACTOR * math.hypot(self.xx, self.xy),
            SIZE_FACTOR * math.hypot(self.yy, self.yx),
        )

    def to_matrix(self) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        return ((self.xx, self.xy), (self.yx, self.yy))


@dataclass(frozen=True)
class Transform:
    """Affine view transform: 2x2 linear part plus translation.

    Maps a world spot position p to canvas coordinates L . p + t.
    """

    xx: float = 1.0
    xy: float = 0.0
    yx: float = 0.0
    yy: float = 1.0
    tx: float = 0.0
    ty: float = 0.0

    @classmethod
    def from_scalar(cls, k: float) -> 'Transform':
        return cls(float(k), 0.0, 0.0, float(k))

    @classmethod
    def from_pair(cls, pair: Sequence[float]) -> 'Transform':
        kx, ky = pair
        return cls(float(kx), 0.0, 0.0, float(ky))

    @classmethod
    def from_matrix(cls, matrix: Sequence[Sequence[float]]) -> 'Transform':
        """Transform from [[xx, xy], [yx, yy]] or [[xx, xy, tx], [yx, yy, ty]]."""
        row0, row1 = matrix
        if len(row0) != len(row1) or len(row0) not in (2, 3):
            raise ValueError(f"Transform matrix must be 2x2 or 2x3, got {matrix}")
        tx = float(row0[2]) if len(row0) == 3 else 0.0
        ty = float(row1[2]) if len(row1) == 3 else 0.0
        return cls(float(row0[0]), float(row0[1]), float(row1[0]), float(row1[1]), tx, ty)

    @classmethod
    def from_value(cls, value: Union[float, Sequence]) -> 'Transform':
        """Build a transform from a scalar, an (x, y) pair or a 2x2/2x3 matrix."""
        if isinstance(value, Transform):
            return value
        if isinstance(value, numbers.Real):
            return cls.from_scalar(value)
        if len(value) == 2 and all(isinstance(v, numbers.Real) for v in value):
            return cls.from_pair(value)
        return cls.from_matrix(value)

    def compose(self, outer: 'Transform') -> 'Transform':
        """Apply self first, then outer."""
        return Transform(
            outer.xx * self.xx + outer.xy * self.yx,
            outer.xx * self.xy + outer.xy * self.yy,
            outer.yx * self.xx + outer.yy * self.yx,
            outer.yx * self.xy + outer.yy * self.yy,
            outer.xx * self.tx + outer.xy * self.ty + outer.tx,
            outer.yx * self.tx + outer.yy * self.ty + outer.ty,
        )

    def translate(self, dx: float, dy: float) -> 'Transform':
        return self.compose(Transform(tx=dx, ty=dy))

    def scale(self, k: float) -> 'Transform':
        return self.compose(Transform.from_scalar(k))

    def stretch(self, kx: float, ky: float) -> 'Transform':
        return self.compose(Transform.from_pair((kx, ky)))

    def rotate(self, phi: float) -> 'Transform':
        c, s = _rotation(phi)
        return self.compose(Transform(c, -s, s, c))

    def apply(self, point: Point) -> Point:
        x, y = point
        return (
            self.xx * x + self.xy * y + self.tx,
            self.yx * x + self.yy * y + self.ty,
        )

    def is_identity(self) -> bool:
        return self == Transform()
