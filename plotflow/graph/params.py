"""Typed parameter schemas, one pydantic model per node kind.

Persisted documents store parameters in camelCase (``startAngle``,
``offsetX``); the models expose snake_case attributes and accept either
spelling. Ranges and defaults are those of the editor's node palette.

Validation never raises to callers: :func:`parse_params` drops each
field that fails validation and lets it take its default, so legacy or
hand-edited documents degrade gracefully instead of aborting a run.

Every field a node algorithm reads must live on its model. The node
hash is computed from the validated model dump, so a parameter missing
here would silently be excluded from cache keys.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from plotflow.graph.kinds import NodeKind

logger = logging.getLogger(__name__)

ColorIndex = Literal[1, 2, 3, 4]

DEFAULT_CODE = """\
# Transform incoming paths or generate new ones
# Available: input (list of paths), api (drawing helpers)
#
# Return: list of paths

# Example: pass through with a slight offset
output = []
for path in input:
    output.append([[x + 5, y + 5] for x, y in path])
return output
"""


# ============================================================================
# BASE
# ============================================================================

class NodeParams(BaseModel):
    """Common configuration for every parameter model."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        allow_inf_nan=False,
        frozen=True,
    )


class ColoredParams(NodeParams):
    """Parameters of nodes that emit geometry of their own."""

    color: Optional[ColorIndex] = Field(None, description="Ink well 1-4; None inherits")


# ============================================================================
# SHAPES
# ============================================================================

class LineParams(ColoredParams):
    x1: float = 10.0
    y1: float = 10.0
    x2: float = 50.0
    y2: float = 50.0


class RectParams(ColoredParams):
    x: float = 20.0
    y: float = 20.0
    width: float = Field(30.0, ge=0.0)
    height: float = Field(20.0, ge=0.0)


class CircleParams(ColoredParams):
    cx: float = 50.0
    cy: float = 50.0
    radius: float = Field(20.0, ge=0.0)
    segments: int = Field(36, ge=3, le=360)


class EllipseParams(ColoredParams):
    cx: float = 50.0
    cy: float = 50.0
    rx: float = Field(30.0, ge=0.0)
    ry: float = Field(20.0, ge=0.0)
    segments: int = Field(36, ge=3, le=360)


class ArcParams(ColoredParams):
    cx: float = 50.0
    cy: float = 50.0
    radius: float = Field(20.0, ge=0.0)
    start_angle: float = Field(0.0, ge=-360.0, le=360.0, description="Degrees")
    end_angle: float = Field(90.0, ge=-360.0, le=360.0, description="Degrees")
    segments: int = Field(24, ge=1, le=360)


class PolygonParams(ColoredParams):
    sides: int = Field(6, ge=3, le=100)
    cx: float = 50.0
    cy: float = 50.0
    radius: float = Field(20.0, ge=0.0)


# ============================================================================
# TEXT
# ============================================================================

class TextParams(ColoredParams):
    text: str = "HELLO"
    x: float = 10.0
    y: float = 10.0
    size: float = Field(10.0, ge=1.0, le=500.0, description="Character width (mm)")
    spacing: float = Field(1.2, ge=0.0, le=10.0, description="Advance multiplier")


class BatakParams(ColoredParams):
    text: str = "horas"
    x: float = 10.0
    y: float = 50.0
    size: float = Field(30.0, ge=1.0, le=500.0, description="Glyph scale (mm per unit)")
    kerning: float = Field(0.0, ge=-100.0, le=100.0, description="Extra advance per base glyph (mm)")


# ============================================================================
# GENERATORS
# ============================================================================

class AttractorParams(ColoredParams):
    attractor_type: Literal["clifford", "dejong", "bedhead", "tinkerbell", "gumowski"] = Field(
        "clifford", alias="type"
    )
    iterations: int = Field(5000, ge=100, le=100_000)
    a: float = -1.4
    b: float = 1.6
    c: float = 1.0
    d: float = 0.7
    scale: float = Field(20.0, ge=0.1)
    center_x: float = 75.0
    center_y: float = 60.0


class LSystemParams(NodeParams):
    axiom: str = Field("F", min_length=1, max_length=100)
    rules: str = Field("F=F+F-F-F+F", min_length=1, max_length=1000)
    iterations: int = Field(3, ge=0, le=10)
    angle: float = 90.0
    step_size: float = Field(10.0, ge=0.1)
    start_x: float = 20.0
    start_y: float = 100.0
    start_angle: float = -90.0
    scale_per_iter: float = Field(0.7, ge=0.1, le=2.0)


# ============================================================================
# TRANSFORMERS
# ============================================================================

class RepeatParams(NodeParams):
    count: int = Field(5, ge=1, le=1000)
    offset_x: float = 10.0
    offset_y: float = 0.0
    rotation: float = 0.0
    scale: float = Field(1.0, ge=0.01, le=100.0)


class GridParams(NodeParams):
    cols: int = Field(3, ge=1, le=100)
    rows: int = Field(3, ge=1, le=100)
    spacing_x: float = 30.0
    spacing_y: float = 30.0
    start_x: float = 15.0
    start_y: float = 15.0


class RadialParams(NodeParams):
    count: int = Field(8, ge=1, le=360)
    cx: float = 75.0
    cy: float = 60.0
    radius: float = Field(40.0, ge=0.0)
    start_angle: float = 0.0


class TranslateParams(NodeParams):
    dx: float = 10.0
    dy: float = 10.0


class RotateParams(NodeParams):
    angle: float = 45.0
    cx: float = 50.0
    cy: float = 50.0


class ScaleParams(NodeParams):
    sx: float = Field(1.5, ge=0.001)
    sy: float = Field(1.5, ge=0.001)
    cx: float = 50.0
    cy: float = 50.0


class PathLayoutParams(NodeParams):
    path_type: Literal["circle", "arc", "line", "wave", "spiral"] = "circle"
    cx: float = 75.0
    cy: float = 60.0
    radius: float = Field(40.0, ge=0.0)
    start_angle: float = 0.0
    end_angle: float = 180.0
    x1: float = 10.0
    y1: float = 60.0
    x2: float = 140.0
    y2: float = 60.0
    amplitude: float = 20.0
    frequency: float = Field(2.0, ge=0.0)
    turns: float = Field(3.0, ge=0.0)
    growth: float = 5.0
    align: Literal["start", "center", "end"] = "start"
    spacing: float = Field(1.0, ge=0.0)
    reverse: bool = False


class AlgorithmicParams(NodeParams):
    formula: str = Field("t*(t>>5|t>>8)", min_length=1)
    count: int = Field(16, ge=1, le=10_000)
    mode: Literal["position", "rotation", "scale", "all"] = "position"
    x_scale: float = 0.5
    y_scale: float = 0.5
    rot_scale: float = 1.0
    scl_scale: float = 0.01
    base_x: float = 75.0
    base_y: float = 60.0


class CodeParams(ColoredParams):
    code: str = DEFAULT_CODE


# ============================================================================
# RASTER
# ============================================================================

class ImageParams(NodeParams):
    image_data: Optional[str] = Field(None, description="data: URL of the source image")
    width: Optional[float] = Field(None, ge=0.0)
    height: Optional[float] = Field(None, ge=0.0)
    filename: Optional[str] = None

    @field_validator("image_data")
    @classmethod
    def _blank_is_missing(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class HalftoneParams(ColoredParams):
    mode: Literal["sine", "zigzag", "square", "triangle"] = "sine"
    line_spacing: float = Field(2.0, ge=0.5, le=20.0)
    wave_length: float = Field(4.0, ge=0.5, le=50.0)
    min_amplitude: float = Field(0.1, ge=0.0, le=10.0)
    max_amplitude: float = Field(1.5, ge=0.1, le=10.0)
    angle: float = Field(0.0, ge=-180.0, le=180.0)
    sample_resolution: int = Field(100, ge=10, le=500)
    invert: bool = False
    flip_x: bool = False
    flip_y: bool = True
    skip_white: bool = False
    white_threshold: float = Field(0.95, ge=0.0, le=1.0)
    output_width: float = Field(100.0, ge=10.0, le=500.0)
    output_height: float = Field(100.0, ge=10.0, le=500.0)


class AsciiParams(ColoredParams):
    charset: str = Field(" .:-=+*#%@", min_length=1)
    cell_width: float = Field(3.0, ge=0.5, le=20.0)
    cell_height: float = Field(4.0, ge=0.5, le=30.0)
    font_size: float = Field(3.0, ge=0.5, le=20.0)
    output_width: float = Field(100.0, ge=10.0, le=500.0)
    output_height: float = Field(100.0, ge=10.0, le=500.0)
    invert: bool = False
    flip_x: bool = False
    flip_y: bool = True


class MaskParams(NodeParams):
    threshold: float = Field(0.5, ge=0.0, le=1.0)
    invert: bool = False
    feather: float = Field(0.0, ge=0.0, le=20.0, description="Sampling radius (mm)")


# ============================================================================
# STRUCTURAL
# ============================================================================

class GroupParams(NodeParams):
    pass


class OutputParams(NodeParams):
    pass


PARAM_MODELS: dict[NodeKind, type[NodeParams]] = {
    NodeKind.LINE: LineParams,
    NodeKind.RECT: RectParams,
    NodeKind.CIRCLE: CircleParams,
    NodeKind.ELLIPSE: EllipseParams,
    NodeKind.ARC: ArcParams,
    NodeKind.POLYGON: PolygonParams,
    NodeKind.TEXT: TextParams,
    NodeKind.BATAK: BatakParams,
    NodeKind.ATTRACTOR: AttractorParams,
    NodeKind.IMAGE: ImageParams,
    NodeKind.HALFTONE: HalftoneParams,
    NodeKind.ASCII: AsciiParams,
    NodeKind.MASK: MaskParams,
    NodeKind.REPEAT: RepeatParams,
    NodeKind.GRID: GridParams,
    NodeKind.RADIAL: RadialParams,
    NodeKind.TRANSLATE: TranslateParams,
    NodeKind.ROTATE: RotateParams,
    NodeKind.SCALE: ScaleParams,
    NodeKind.PATH: PathLayoutParams,
    NodeKind.ALGORITHMIC: AlgorithmicParams,
    NodeKind.LSYSTEM: LSystemParams,
    NodeKind.CODE: CodeParams,
    NodeKind.GROUP: GroupParams,
    NodeKind.OUTPUT: OutputParams,
}

_missing = set(NodeKind) - set(PARAM_MODELS)
if _missing:
    raise RuntimeError(f"No parameter model for node kinds: {sorted(k.value for k in _missing)}")


def parse_params(kind: NodeKind, data: Any) -> NodeParams:
    """Validate a raw parameter bag, falling back to defaults per field.

    Parameters
    ----------
    kind : NodeKind
        Selects the model.
    data : Any
        Raw bag from the document.  Anything that is not a mapping is
        treated as empty.

    Returns
    -------
    NodeParams
        Instance of ``PARAM_MODELS[kind]``.  Never raises.
    """
    model = PARAM_MODELS[kind]
    if not isinstance(data, Mapping):
        return model()

    bag = dict(data)
    try:
        return model.model_validate(bag)
    except ValidationError as exc:
        rejected = {str(err["loc"][0]) for err in exc.errors() if err.get("loc")}
        logger.debug("%s params: falling back to defaults for %s", kind.value, sorted(rejected))

    for name, info in model.model_fields.items():
        if name in rejected or info.alias in rejected:
            rejected.update({name, info.alias or name})
    cleaned = {k: v for k, v in bag.items() if k not in rejected}
    try:
        return model.model_validate(cleaned)
    except ValidationError:
        return model()
