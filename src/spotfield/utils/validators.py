"""YAML scene schema validation and loading.

Scene files (scene.v1) describe a complete synthetic image: canvas geometry,
background and brightness, the view transform, the spot list, the export
format and an optional frame sequence with a constant drift. They are
validated with pydantic so that bad values fail fast with the offending key
in the message.

Units:
    - Positions, offsets, drift: pixels (canvas frame, +Y down)
    - Angles: degrees, counter-clockwise in canvas coordinates
    - Intensity, illumination, brightness: relative (1.0 = full scale peak)
    - Background: 16-bit pixel value

Usage:
    from spotfield.utils import validators

    scene = validators.load_scene_config("configs/scene.v1.yaml")
    print(scene.canvas.width, len(scene.spots))
"""

from pathlib import Path
from typing import List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


Matrix2x2 = Tuple[Tuple[float, float], Tuple[float, float]]

# Names of spotfield.renderer.export.ImageFormat members
FormatName = Literal[
    "raw_gamma_8bpp",
    "raw_linear_10bpp_le",
    "raw_linear_12bpp_le",
    "png_gamma_8bpp",
    "png_linear_16bpp",
]


# ============================================================================
# SHAPE / TRANSFORM
# ============================================================================

class ShapeConfig(BaseModel):
    """Spot shape: optional raw matrix, then scale -> stretch -> rotate."""
    matrix: Optional[Matrix2x2] = Field(None, description="[[xx, xy], [yx, yy]]")
    scale: float = Field(1.0, description="Isotropic scale (diffraction radius in px)")
    stretch: Tuple[float, float] = Field((1.0, 1.0), description="(kx, ky) row scaling")
    rotate: float = Field(0.0, description="Rotation in degrees")

    @model_validator(mode='after')
    def validate_not_singular(self) -> 'ShapeConfig':
        """Reject shapes that would collapse to a line."""
        (xx, xy), (yx, yy) = self.matrix or ((1.0, 0.0), (0.0, 1.0))
        det = (xx * yy - xy * yx) * self.scale ** 2 * self.stretch[0] * self.stretch[1]
        if abs(det) < 0.01:
            raise ValueError(f"Spot shape is singular (det={det:.4g})")
        return self


class TransformConfig(BaseModel):
    """View transform: optional raw matrix, then scale -> stretch -> rotate -> translate."""
    matrix: Optional[List[List[float]]] = Field(
        None, description="[[xx, xy], [yx, yy]] or [[xx, xy, tx], [yx, yy, ty]]"
    )
    scale: float = Field(1.0)
    stretch: Tuple[float, float] = Field((1.0, 1.0))
    rotate: float = Field(0.0)
    translate: Tuple[float, float] = Field((0.0, 0.0))

    @field_validator('matrix')
    @classmethod
    def validate_matrix_shape(cls, v: Optional[List[List[float]]]) -> Optional[List[List[float]]]:
        if v is None:
            return v
        if len(v) != 2 or len(v[0]) != len(v[1]) or len(v[0]) not in (2, 3):
            raise ValueError(f"Transform matrix must be 2x2 or 2x3, got {v}")
        return v


# ============================================================================
# SCENE V1
# ============================================================================

class CanvasConfig(BaseModel):
    """Canvas geometry and global levels."""
    width: int = Field(..., ge=0, description="Width in pixels")
    height: int = Field(..., ge=0, description="Height in pixels")
    background: int = Field(0, ge=0, le=65535, description="Background pixel level")
    brightness: float = Field(1.0, description="Global spot brightness factor")
    pattern_size: int = Field(1024, ge=2, description="Pattern LUT entries")


class SpotConfig(BaseModel):
    """Single light spot."""
    position: Tuple[float, float] = Field(..., description="Centroid (x, y) in px")
    intensity: float = Field(1.0, description="Relative peak intensity")
    illumination: float = Field(1.0, description="Illumination factor")
    offset: Tuple[float, float] = Field((0.0, 0.0), description="Position offset (x, y) in px")
    shape: ShapeConfig = Field(default_factory=ShapeConfig)


class WindowConfig(BaseModel):
    """Export window (origin + size) in pixels."""
    x: int = Field(0, ge=0)
    y: int = Field(0, ge=0)
    w: int = Field(..., ge=1)
    h: int = Field(..., ge=1)


class OutputConfig(BaseModel):
    """Export settings."""
    format: FormatName = Field("png_linear_16bpp", description="ImageFormat name")
    window: Optional[WindowConfig] = None
    subsample: Optional[Tuple[int, int]] = Field(None, description="(fx, fy) factors")

    @field_validator('format', mode='before')
    @classmethod
    def normalize_format(cls, v):
        return v.lower() if isinstance(v, str) else v

    @field_validator('subsample')
    @classmethod
    def validate_subsample(cls, v: Optional[Tuple[int, int]]) -> Optional[Tuple[int, int]]:
        if v is not None and (v[0] < 1 or v[1] < 1):
            raise ValueError(f"Subsampling factors must be >= 1, got {v}")
        return v

    @model_validator(mode='after')
    def validate_exclusive(self) -> 'OutputConfig':
        if self.window is not None and self.subsample is not None:
            raise ValueError("Output 'window' and 'subsample' are mutually exclusive")
        return self


class SequenceConfig(BaseModel):
    """Frame sequence: every frame shifts all spots by drift * frame_index."""
    frames: int = Field(1, ge=1, le=100000)
    drift: Tuple[float, float] = Field((0.0, 0.0), description="Per-frame drift (dx, dy) in px")


class SceneV1(BaseModel):
    """Complete scene definition (scene.v1 schema)."""
    model_config = ConfigDict(populate_by_name=True)

    schema_version: str = Field("scene.v1", alias="schema")
    name: str = Field("scene", min_length=1)
    canvas: CanvasConfig
    transform: TransformConfig = Field(default_factory=TransformConfig)
    spots: List[SpotConfig] = Field(default_factory=list)
    output: OutputConfig = Field(default_factory=OutputConfig)
    sequence: SequenceConfig = Field(default_factory=SequenceConfig)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "scene.v1":
            raise ValueError(f"Expected schema 'scene.v1', got '{v}'")
        return v

    @model_validator(mode='after')
    def validate_window_inside(self) -> 'SceneV1':
        wnd = self.output.window
        if wnd is not None:
            if wnd.x + wnd.w > self.canvas.width or wnd.y + wnd.h > self.canvas.height:
                raise ValueError(
                    f"Output window ({wnd.x}, {wnd.y})+({wnd.w}, {wnd.h}) exceeds "
                    f"canvas {self.canvas.width}x{self.canvas.height}"
                )
        return self


def load_scene_config(path: Union[str, Path]) -> SceneV1:
    """Load and validate a scene file.

    Parameters
    ----------
    path : str or Path
        Path to a scene.v1 YAML file

    Returns
    -------
    SceneV1
        Validated scene

    Raises
    ------
    FileNotFoundError
        If file does not exist
    yaml.YAMLError
        If the file is not valid YAML
    pydantic.ValidationError
        If the scene is invalid (including a non-mapping document)
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Scene file not found: {path}")

    cfg = fs.load_yaml(path) or {}
    return SceneV1.model_validate(cfg)
