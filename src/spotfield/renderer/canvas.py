"""Light spot canvas: spot registry and sub-pixel rasterizer.

Deterministic, pure-CPU rendering of Airy disc light spots into a 16-bit
grayscale pixel buffer.

Architecture:
    - Spots registered with an immutable centroid, shape matrix and intensity
    - Runtime adjustments per spot: position offset, illumination factor
    - Global adjustments: view transform, brightness, background level
    - Per spot: bounding box from the shape's effective radius, clipped to the canvas
    - Per pixel in the box (vectorized with numpy): radius vector -> inverse shape
      matrix -> normalized distance -> pattern LUT -> 16-bit value
    - Composition: linear intensity addition with saturation at PIXEL_MAX

Invariants:
    - len(pixbuf) == width * height; row-major, origin top-left, stride = width
    - draw() always clears to the background level first (not incremental)
    - Spot ids are 0-based insertion indexes and never change
    - A malformed spot is skipped, never aborts the frame

Usage:
    from spotfield.renderer import Canvas, SpotShape

    canvas = Canvas(256, 256)
    canvas.set_background(1000)
    spot = canvas.add_spot((100.6, 150.2), SpotShape().scale(4.5), 0.9)
    canvas.set_spot_offset(spot, (0.25, -0.5))
    canvas.draw()
    pixels = canvas.pixels()
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from . import export
from .pattern import DEFAULT_TABLE_SIZE, PatternTable
from .shape import Point, SpotShape, Transform, Vector

logger = logging.getLogger(__name__)

# Maximum 16-bit pixel value
PIXEL_MAX = 65535

SpotId = int


@dataclass
class SpotRecord:
    """Registered light spot.

    `position`, `shape` and `intensity` are fixed at registration, so the
    cached inverse shape never needs invalidation.

    Attributes
    ----------
    position : tuple
        Spot centroid (x, y) in world coordinates
    shape : SpotShape
        Spot shape matrix
    intensity : float
        Relative peak intensity
    shape_inv : SpotShape
        Inverted shape matrix (cached)
    offset : tuple
        Runtime position offset (x, y), default (0, 0)
    illumination : float
        Runtime intensity factor, default 1.0
    """

    position: Point
    shape: SpotShape
    intensity: float
    shape_inv: SpotShape
    offset: Vector = (0.0, 0.0)
    illumination: float = 1.0

    def world_position(self) -> Point:
        """Spot position with the offset applied (before the view transform)."""
        return (
            self.position[0] + self.offset[0],
            self.position[1] + self.offset[1],
        )


@dataclass(frozen=True)
class BoundingBox:
    """Spot bounding box in pixels, clipped to the canvas.

    x0/y0 are inclusive, x1/y1 exclusive.
    """

    x0: int
    y0: int
    x1: int
    y1: int

    @classmethod
    def for_spot(
        cls,
        position: Point,
        shape: SpotShape,
        width: int,
        height: int
    ) -> 'BoundingBox':
        """Compute the clipped bounding box of a spot.

        Parameters
        ----------
        position : tuple
            Effective spot position (x, y) in canvas coordinates
        shape : SpotShape
            Spot shape (its effective radius sizes the box)
        width, height : int
            Canvas dimensions

        Returns
        -------
        BoundingBox
            Box clamped into [0, width] x [0, height]; may be empty
        """
        rx, ry = shape.effective_radius_xy()
        px, py = position

        if not all(math.isfinite(v) for v in (rx, ry, px, py)):
            return cls(0, 0, 0, 0)

        def clamp(v: float, hi: int) -> int:
            return max(0, min(hi, int(v)))

        return cls(
            clamp(math.floor(px - rx), width),
            clamp(math.floor(py - ry), height),
            clamp(math.ceil(px + rx), width),
            clamp(math.ceil(py + ry), height),
        )

    def is_empty(self) -> bool:
        return self.x0 == self.x1 or self.y0 == self.y1

    @property
    def shape(self) -> Tuple[int, int]:
        """(rows, cols) of the box."""
        return (self.y1 - self.y0, self.x1 - self.x0)


class Canvas:
    """Synthesized image containing multiple light spots.

    Attributes
    ----------
    width : int
        Canvas width in pixels
    height : int
        Canvas height in pixels
    background : int
        Background light level (dark pixel value)
    brightness : float
        Global spot brightness factor
    transform : Transform
        View transform applied to all spot positions
    pattern : PatternTable
        Spot pattern lookup table
    pixbuf : np.ndarray
        Pixel buffer, uint16, shape (width * height,)
    """

    def __init__(self, width: int, height: int, pattern_size: int = DEFAULT_TABLE_SIZE):
        """Create a new clear canvas.

        Parameters
        ----------
        width : int
            Canvas width in pixels (may be zero)
        height : int
            Canvas height in pixels (may be zero)
        pattern_size : int
            Spot pattern LUT size, default 1024
        """
        if width < 0 or height < 0:
            raise ValueError(f"Canvas dimensions must be non-negative, got {width}x{height}")

        self.width = int(width)
        self.height = int(height)
        self.background = 0
        self.brightness = 1.0
        self.transform = Transform()
        self.pattern = PatternTable(pattern_size)
        self.pixbuf = np.zeros(self.width * self.height, dtype=np.uint16)
        self._spots: List[SpotRecord] = []

        logger.debug(f"Canvas created: {self.width}x{self.height}, pattern_size={pattern_size}")

    # ------------------------------------------------------------------
    # Spot registry
    # ------------------------------------------------------------------

    def add_spot(
        self,
        position: Point,
        shape: SpotShape = SpotShape(),
        intensity: float = 1.0
    ) -> SpotId:
        """Register a new light spot.

        Parameters
        ----------
        position : tuple
            Spot centroid (x, y)
        shape : SpotShape
            Spot shape matrix, default unit circular spot
        intensity : float
            Relative peak intensity (1.0 saturates a lone spot's center)

        Returns
        -------
        int
            Spot id (0-based, sequential)
        """
        shape = SpotShape.from_value(shape)
        spot = SpotRecord(
            position=(float(position[0]), float(position[1])),
            shape=shape,
            intensity=float(intensity),
            shape_inv=shape.invert(),
        )
        spot_id = len(self._spots)
        self._spots.append(spot)
        return spot_id

    def _get_spot(self, spot_id: SpotId) -> Optional[SpotRecord]:
        if 0 <= spot_id < len(self._spots):
            return self._spots[spot_id]
        return None

    def set_spot_offset(self, spot_id: SpotId, offset: Vector) -> None:
        """Set the spot position offset; unknown ids are ignored."""
        spot = self._get_spot(spot_id)
        if spot is not None:
            spot.offset = (float(offset[0]), float(offset[1]))

    def set_spot_illumination(self, spot_id: SpotId, illumination: float) -> None:
        """Set the spot illumination factor; unknown ids are ignored."""
        spot = self._get_spot(spot_id)
        if spot is not None:
            spot.illumination = float(illumination)

    def spot_position(self, spot_id: SpotId) -> Optional[Point]:
        """Effective canvas position of a spot, or None for unknown ids."""
        spot = self._get_spot(spot_id)
        if spot is None:
            return None
        return self.transform.apply(spot.world_position())

    def spot_intensity(self, spot_id: SpotId) -> Optional[float]:
        """Effective peak intensity of a spot, or None for unknown ids."""
        spot = self._get_spot(spot_id)
        if spot is None:
            return None
        return spot.intensity * spot.illumination * self.brightness

    def __len__(self) -> int:
        return len(self._spots)

    # ------------------------------------------------------------------
    # Global state
    # ------------------------------------------------------------------

    def set_view_transform(self, transform: Transform) -> None:
        self.transform = Transform.from_value(transform)

    def set_brightness(self, brightness: float) -> None:
        self.brightness = float(brightness)

    def set_background(self, level: int) -> None:
        """Set the background light level, clamped into [0, PIXEL_MAX]."""
        self.background = max(0, min(PIXEL_MAX, int(level)))

    def dimensions(self) -> Tuple[int, int]:
        """Canvas dimensions as (width, height)."""
        return (self.width, self.height)

    def pixels(self) -> np.ndarray:
        """Read-only view of the row-major pixel buffer."""
        view = self.pixbuf.view()
        view.flags.writeable = False
        return view

    def image(self) -> np.ndarray:
        """Read-only (height, width) view of the pixel buffer."""
        view = self.pixbuf.reshape(self.height, self.width)
        view.flags.writeable = False
        return view

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Fill the canvas with the background level."""
        self.pixbuf.fill(self.background)

    def draw(self) -> None:
        """Render all spots onto a freshly cleared canvas."""
        self.clear()

        if self.brightness <= 0.0:
            return

        drawn = 0
        for spot in self._spots:
            if self._draw_spot(spot):
                drawn += 1

        logger.debug(f"Canvas drawn: {drawn}/{len(self._spots)} spots rasterized")

    def draw_spot(self, spot_id: SpotId) -> bool:
        """Draw a single spot on top of the current buffer (no clearing).

        Returns False for unknown ids and for skipped spots.
        """
        spot = self._get_spot(spot_id)
        if spot is None:
            return False
        return self._draw_spot(spot)

    def _draw_spot(self, spot: SpotRecord) -> bool:
        """Rasterize a single spot, accumulating into the pixel buffer.

        Parameters
        ----------
        spot : SpotRecord
            Spot to draw

        Returns
        -------
        bool
            True if any pixel was visited, False if the spot was skipped
        """
        intensity = spot.intensity * spot.illumination * self.brightness

        # Fast path for dark spots
        if not intensity > 0.0:
            return False
        if not math.isfinite(intensity):
            logger.debug(f"Spot at {spot.position} has non-finite intensity, skipped")
            return False

        px, py = self.transform.apply(spot.world_position())
        if not (math.isfinite(px) and math.isfinite(py)):
            logger.debug(f"Spot at {spot.position} has non-finite canvas position, skipped")
            return False

        bbox = BoundingBox.for_spot((px, py), spot.shape, self.width, self.height)

        # Clipped out of the canvas
        if bbox.is_empty():
            return False

        # Pixel radius vectors over the box; pixel centers at integer coordinates
        ys, xs = np.meshgrid(
            np.arange(bbox.y0, bbox.y1, dtype=np.float64),
            np.arange(bbox.x0, bbox.x1, dtype=np.float64),
            indexing='ij'
        )
        tx, ty = spot.shape_inv.apply((xs - px, ys - py))
        dist = np.hypot(tx, ty)

        pattern_vals = np.asarray(self.pattern.eval(dist), dtype=np.float64)
        values = np.floor(intensity * pattern_vals * PIXEL_MAX + 0.5)
        values = np.minimum(values, PIXEL_MAX).astype(np.uint32)

        # Saturating accumulation in a wider integer type
        img = self.pixbuf.reshape(self.height, self.width)
        roi = img[bbox.y0:bbox.y1, bbox.x0:bbox.x1]
        img[bbox.y0:bbox.y1, bbox.x0:bbox.x1] = np.minimum(
            roi.astype(np.uint32) + values, PIXEL_MAX
        ).astype(np.uint16)

        return True

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_image(self, fmt: export.ImageFormat) -> bytes:
        """Export the canvas contents in the requested image format."""
        return export.export_full(self.image(), fmt)

    def export_window_image(self, window: export.Window, fmt: export.ImageFormat) -> bytes:
        """Export a canvas window in the requested image format."""
        return export.export_window(self.image(), window, fmt)

    def export_subsampled_image(
        self,
        factors: Tuple[int, int],
        fmt: export.ImageFormat
    ) -> bytes:
        """Export the canvas subsampled by (X, Y) factors."""
        return export.export_subsampled(self.image(), factors, fmt)

    def __repr__(self) -> str:
        return (
            f"Canvas({self.width}x{self.height}, spots={len(self._spots)}, "
            f"background={self.background}, brightness={self.brightness})"
        )
