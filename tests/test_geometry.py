"""Tests for path primitives and affine transforms.

Tests for plotflow.geometry:
    - ColoredPath validation and float coercion
    - make_path / make_paths drop degenerate polylines
    - centroid and bounds, including empty collections
    - transform_paths pivots, place_paths centring
    - simplify_points keeps endpoints

Run:
    pytest tests/test_geometry.py -v
"""

import math

import pytest

from plotflow.geometry import (
    ColoredPath,
    bounds,
    centroid,
    make_path,
    make_paths,
    place_paths,
    recolor,
    simplify_points,
    transform_paths,
    translate_paths,
)


def _close(a, b, tol=1e-9):
    return all(math.isclose(p, q, abs_tol=tol) for p, q in zip(a, b))


class TestColoredPath:
    """Construction and invariants."""

    def test_requires_two_points(self):
        with pytest.raises(ValueError, match=">= 2 points"):
            ColoredPath(((0.0, 0.0),))

    def test_rejects_unknown_color(self):
        with pytest.raises(ValueError, match="color must be one of"):
            ColoredPath(((0.0, 0.0), (1.0, 1.0)), color=7)

    def test_coerces_lists_to_float_tuples(self):
        path = ColoredPath([[0, 0], [1, 2]])
        assert path.points == ((0.0, 0.0), (1.0, 2.0))
        assert isinstance(path.points[1][1], float)

    def test_to_dict(self):
        path = ColoredPath(((0.0, 0.0), (1.0, 2.0)), color=2)
        assert path.to_dict() == {"color": 2, "points": [[0.0, 0.0], [1.0, 2.0]]}

    def test_recolor_keeps_points(self):
        path = ColoredPath(((0.0, 0.0), (1.0, 2.0)))
        (out,) = recolor([path], 3)
        assert out.color == 3
        assert out.points == path.points


class TestBuilders:
    """make_path / make_paths."""

    def test_make_path_degenerate_is_none(self):
        assert make_path([(1, 1)]) is None
        assert make_path([]) is None

    def test_make_paths_drops_short_polylines(self):
        paths = make_paths([[(0, 0)], [(0, 0), (1, 1)], []], color=1)
        assert len(paths) == 1
        assert paths[0].color == 1


class TestMeasures:
    """centroid, bounds and simplify_points."""

    def test_centroid_of_empty_is_origin(self):
        assert centroid([]) == (0.0, 0.0)

    def test_centroid_is_vertex_mean(self):
        paths = [ColoredPath(((0.0, 0.0), (2.0, 0.0))), ColoredPath(((2.0, 2.0), (0.0, 2.0)))]
        assert centroid(paths) == (1.0, 1.0)

    def test_bounds(self):
        box = bounds([ColoredPath(((-1.0, 2.0), (3.0, 5.0)))])
        assert (box.min_x, box.min_y, box.max_x, box.max_y) == (-1.0, 2.0, 3.0, 5.0)
        assert box.width == 4.0
        assert box.height == 3.0
        assert box.center == (1.0, 3.5)

    def test_bounds_of_empty_is_none(self):
        assert bounds([]) is None

    def test_simplify_keeps_first_and_last(self):
        pts = [(0.0, 0.0), (0.01, 0.0), (0.02, 0.0), (5.0, 0.0), (5.001, 0.0)]
        out = simplify_points(pts, 0.5)
        assert out[0] == (0.0, 0.0)
        assert out[-1] == (5.001, 0.0)
        assert (0.01, 0.0) not in out


class TestTransforms:
    """Affine helpers preserve color and pivot correctly."""

    @pytest.fixture
    def segment(self):
        return [ColoredPath(((1.0, 0.0), (2.0, 0.0)), color=4)]

    def test_translate(self, segment):
        (out,) = translate_paths(segment, 10, -1)
        assert out.points == ((11.0, -1.0), (12.0, -1.0))
        assert out.color == 4

    def test_rotate_about_origin(self, segment):
        (out,) = transform_paths(segment, rotation=90)
        assert _close(out.points[0], (0.0, 1.0))
        assert _close(out.points[1], (0.0, 2.0))

    def test_scale_about_pivot(self, segment):
        (out,) = transform_paths(segment, sx=2, cx=1, cy=0)
        assert _close(out.points[0], (1.0, 0.0))
        assert _close(out.points[1], (3.0, 0.0))

    def test_non_uniform_scale(self):
        (out,) = transform_paths([ColoredPath(((1.0, 1.0), (2.0, 2.0)))], sx=2, sy=3)
        assert _close(out.points[1], (4.0, 6.0))

    def test_place_moves_centroid(self, segment):
        (out,) = place_paths(segment, 10, 10)
        assert _close(centroid([out]), (10.0, 10.0))

    def test_place_rotates_about_centroid(self, segment):
        (out,) = place_paths(segment, 1.5, 0.0, rotation=90)
        assert _close(out.points[0], (1.5, -0.5))
        assert _close(out.points[1], (1.5, 0.5))

    def test_empty_input(self):
        assert transform_paths([], tx=5) == []
