"""Parametric shape generators.

Angle-based shapes sample ``segments + 1`` evenly spaced steps over
their sweep, so closed shapes end exactly where they start.  Each
generator returns a single path tagged with the node's own color.
"""

from __future__ import annotations

import math

from plotflow.geometry import ColoredPath, Point, make_paths
from plotflow.graph.params import (
    ArcParams,
    CircleParams,
    EllipseParams,
    LineParams,
    PolygonParams,
    RectParams,
)
from plotflow.nodes.context import NodeContext

# ---------------------------------------------------------------------------
# Point builders
# ---------------------------------------------------------------------------


def line_points(x1: float, y1: float, x2: float, y2: float) -> list[Point]:
    return [(x1, y1), (x2, y2)]


def rect_points(x: float, y: float, width: float, height: float) -> list[Point]:
    """Closed rectangle, clockwise from ``(x, y)``."""
    return [(x, y), (x + width, y), (x + width, y + height), (x, y + height), (x, y)]


def ellipse_points(cx: float, cy: float, rx: float, ry: float, segments: int) -> list[Point]:
    segments = max(1, int(segments))
    points = []
    for i in range(segments + 1):
        angle = (i / segments) * math.pi * 2
        points.append((cx + math.cos(angle) * rx, cy + math.sin(angle) * ry))
    return points


def circle_points(cx: float, cy: float, radius: float, segments: int) -> list[Point]:
    return ellipse_points(cx, cy, radius, radius, segments)


def arc_points(
    cx: float, cy: float, radius: float, start_angle: float, end_angle: float, segments: int
) -> list[Point]:
    """Arc from ``start_angle`` to ``end_angle`` (degrees)."""
    segments = max(1, int(segments))
    start = math.radians(start_angle)
    sweep = math.radians(end_angle) - start
    points = []
    for i in range(segments + 1):
        angle = start + (i / segments) * sweep
        points.append((cx + math.cos(angle) * radius, cy + math.sin(angle) * radius))
    return points


def polygon_points(cx: float, cy: float, radius: float, sides: int) -> list[Point]:
    """Closed regular polygon with its first vertex straight up (-90 deg)."""
    sides = max(3, int(sides))
    points = []
    for i in range(sides + 1):
        angle = (i / sides) * math.pi * 2 - math.pi / 2
        points.append((cx + math.cos(angle) * radius, cy + math.sin(angle) * radius))
    return points


# ---------------------------------------------------------------------------
# Node entry points
# ---------------------------------------------------------------------------


def generate_line(params: LineParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    return make_paths([line_points(params.x1, params.y1, params.x2, params.y2)], params.color)


def generate_rect(params: RectParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    return make_paths([rect_points(params.x, params.y, params.width, params.height)], params.color)


def generate_circle(params: CircleParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    pts = circle_points(params.cx, params.cy, params.radius, params.segments)
    return make_paths([pts], params.color)


def generate_ellipse(params: EllipseParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    pts = ellipse_points(params.cx, params.cy, params.rx, params.ry, params.segments)
    return make_paths([pts], params.color)


def generate_arc(params: ArcParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    pts = arc_points(
        params.cx, params.cy, params.radius, params.start_angle, params.end_angle, params.segments
    )
    return make_paths([pts], params.color)


def generate_polygon(params: PolygonParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    pts = polygon_points(params.cx, params.cy, params.radius, params.sides)
    return make_paths([pts], params.color)
