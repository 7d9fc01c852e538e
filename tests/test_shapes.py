"""Tests for shape generators.

Tests for plotflow.nodes.shapes:
    - circle with 4 segments: closed 5-point square from (70, 50)
    - rect closes clockwise, polygon starts straight up
    - arc sweeps start -> end, colors propagate

Run:
    pytest tests/test_shapes.py -v
"""

import math

import pytest

from plotflow.graph import NodeKind, parse_params
from plotflow.nodes.shapes import (
    generate_arc,
    generate_circle,
    generate_ellipse,
    generate_line,
    generate_polygon,
    generate_rect,
)


def _approx(points):
    return [pytest.approx(p, abs=1e-9) for p in points]


class TestCircle:
    """Circle sampling."""

    def test_four_segment_circle(self, ctx):
        params = parse_params(NodeKind.CIRCLE, {"cx": 50, "cy": 50, "radius": 20, "segments": 4})
        (path,) = generate_circle(params, [], ctx)
        assert len(path.points) == 5
        assert list(path.points) == _approx([(70, 50), (50, 70), (30, 50), (50, 30), (70, 50)])

    def test_default_circle_is_closed(self, ctx):
        (path,) = generate_circle(parse_params(NodeKind.CIRCLE, {}), [], ctx)
        assert len(path.points) == 37
        assert path.points[0] == pytest.approx(path.points[-1])

    def test_color_tag(self, ctx):
        (path,) = generate_circle(parse_params(NodeKind.CIRCLE, {"color": 2}), [], ctx)
        assert path.color == 2


class TestOtherShapes:
    """Line, rect, ellipse, arc, polygon."""

    def test_line(self, ctx):
        params = parse_params(NodeKind.LINE, {"x1": 0, "y1": 0, "x2": 3, "y2": 4})
        (path,) = generate_line(params, [], ctx)
        assert path.points == ((0.0, 0.0), (3.0, 4.0))

    def test_rect(self, ctx):
        params = parse_params(NodeKind.RECT, {"x": 1, "y": 2, "width": 3, "height": 4})
        (path,) = generate_rect(params, [], ctx)
        assert path.points == ((1, 2), (4, 2), (4, 6), (1, 6), (1, 2))

    def test_ellipse_extents(self, ctx):
        params = parse_params(NodeKind.ELLIPSE, {"cx": 0, "cy": 0, "rx": 10, "ry": 5, "segments": 4})
        (path,) = generate_ellipse(params, [], ctx)
        assert list(path.points) == _approx([(10, 0), (0, 5), (-10, 0), (0, -5), (10, 0)])

    def test_arc(self, ctx):
        params = parse_params(
            NodeKind.ARC,
            {"cx": 0, "cy": 0, "radius": 1, "startAngle": 0, "endAngle": 180, "segments": 2},
        )
        (path,) = generate_arc(params, [], ctx)
        assert list(path.points) == _approx([(1, 0), (0, 1), (-1, 0)])

    def test_polygon_first_vertex_up(self, ctx):
        params = parse_params(NodeKind.POLYGON, {"sides": 3, "cx": 0, "cy": 0, "radius": 2})
        (path,) = generate_polygon(params, [], ctx)
        assert len(path.points) == 4
        assert path.points[0] == pytest.approx((0.0, -2.0))
        side = math.dist(path.points[0], path.points[1])
        assert side == pytest.approx(2 * math.sqrt(3))

    def test_inputs_ignored(self, ctx):
        params = parse_params(NodeKind.LINE, {})
        first = generate_line(params, [], ctx)
        assert generate_line(params, first, ctx) == first
