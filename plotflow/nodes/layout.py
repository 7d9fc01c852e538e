"""Lay geometry out along a parametric curve (text on a path).

The input's bounding box is read as a strip of text: each point's X
becomes a position along the curve and its Y offset from the strip's
centre line becomes a displacement along the curve normal.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from plotflow.geometry import ColoredPath, bounds, make_path
from plotflow.graph.params import PathLayoutParams
from plotflow.nodes.context import NodeContext


@dataclass(frozen=True, slots=True)
class CurveSample:
    """Point on the curve and its tangent direction in degrees."""

    x: float
    y: float
    angle: float


def point_on_curve(params: PathLayoutParams, t: float) -> CurveSample:
    """Evaluate the target curve at ``t`` in [0, 1]."""
    cx, cy, radius = params.cx, params.cy, params.radius
    kind = params.path_type

    if kind == "circle":
        # full turn starting at the top
        angle = -math.pi / 2 + t * math.pi * 2
        return CurveSample(
            cx + math.cos(angle) * radius,
            cy + math.sin(angle) * radius,
            math.degrees(angle + math.pi / 2),
        )
    if kind == "arc":
        start = math.radians(params.start_angle)
        angle = start + t * (math.radians(params.end_angle) - start)
        return CurveSample(
            cx + math.cos(angle) * radius,
            cy + math.sin(angle) * radius,
            math.degrees(angle + math.pi / 2),
        )
    if kind == "line":
        dx = params.x2 - params.x1
        dy = params.y2 - params.y1
        return CurveSample(params.x1 + t * dx, params.y1 + t * dy, math.degrees(math.atan2(dy, dx)))
    if kind == "wave":
        width = radius * 3
        phase = t * math.pi * 2 * params.frequency
        slope = (
            (params.amplitude * params.frequency * 2 * math.pi / width) * math.cos(phase)
            if width
            else 0.0
        )
        return CurveSample(
            cx - width / 2 + t * width,
            cy + math.sin(phase) * params.amplitude,
            math.degrees(math.atan(slope)),
        )
    if kind == "spiral":
        angle = t * math.pi * 2 * params.turns
        r = params.growth + t * radius
        return CurveSample(
            cx + math.cos(angle) * r,
            cy + math.sin(angle) * r,
            math.degrees(angle + math.pi / 2),
        )
    raise ValueError(f"Unknown path type {kind!r}")


def curve_length(params: PathLayoutParams, samples: int = 100) -> float:
    """Arclength by summing chords between ``samples + 1`` evenly spaced points."""
    length = 0.0
    prev = point_on_curve(params, 0.0)
    for i in range(1, samples + 1):
        point = point_on_curve(params, i / samples)
        length += math.hypot(point.x - prev.x, point.y - prev.y)
        prev = point
    return length


def layout_along_curve(
    paths: list[ColoredPath], params: PathLayoutParams, samples: int = 100
) -> list[ColoredPath]:
    """Map ``paths`` onto the curve described by ``params``.

    Parameters
    ----------
    paths : list[ColoredPath]
        Geometry read as a horizontal strip.
    params : PathLayoutParams
        Curve, alignment (start/center/end), spacing and direction.
    samples : int
        Chord count for the arclength estimate.

    Returns
    -------
    list[ColoredPath]
        One output path per input path, colors preserved.
    """
    box = bounds(paths)
    if box is None:
        return []

    text_width = box.width * params.spacing
    center_y = box.center[1]
    length = curve_length(params, samples)
    span = text_width / length if length > 0 else 0.0

    start_t = 0.0
    if params.align == "center":
        start_t = 0.5 - span / 2
    elif params.align == "end":
        start_t = 1 - span

    result = []
    for path in paths:
        points = []
        for px, py in path.points:
            text_t = (px - box.min_x) / text_width if text_width > 0 else 0.0
            t = start_t + text_t * span
            if params.reverse:
                t = 1 - t
            t = min(1.0, max(0.0, t))

            sample = point_on_curve(params, t)
            heading = sample.angle + 180 if params.reverse else sample.angle
            normal = math.radians(heading) - math.pi / 2
            offset = py - center_y
            points.append(
                (sample.x + math.cos(normal) * offset, sample.y + math.sin(normal) * offset)
            )

        laid = make_path(points, path.color)
        if laid is not None:
            result.append(laid)
    return result


def apply_path_layout(
    params: PathLayoutParams, inputs: list[ColoredPath], ctx: NodeContext
) -> list[ColoredPath]:
    if not inputs:
        return []
    return layout_along_curve(inputs, params, ctx.limits.path_layout.arclength_samples)
