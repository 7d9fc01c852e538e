"""Polyline primitives shared by every node kind.

A :class:`ColoredPath` is one continuous pen-down stroke: an ordered
sequence of at least two points in drawing millimetres, plus an optional
ink-well tag.  Only generator nodes assign the tag; transformers carry
it through unchanged.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

Point = tuple[float, float]
"""A finite (x, y) pair in drawing millimetres."""

VALID_COLORS = (1, 2, 3, 4)
"""Ink-well indices a path may be tagged with."""


# ---------------------------------------------------------------------------
# ColoredPath
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ColoredPath:
    """Polyline with an optional ink-well tag.

    Parameters
    ----------
    points : tuple[Point, ...]
        Draw-ordered vertices.  At least two are required; producers
        drop degenerate polylines before building a path.
    color : int | None
        Ink well 1-4, or ``None`` to inherit the downstream default.
    """

    points: tuple[Point, ...]
    color: int | None = None

    def __post_init__(self) -> None:
        if len(self.points) < 2:
            raise ValueError(f"ColoredPath requires >= 2 points, got {len(self.points)}")
        if self.color is not None and self.color not in VALID_COLORS:
            raise ValueError(f"color must be one of {VALID_COLORS} or None, got {self.color!r}")
        if not isinstance(self.points, tuple) or not all(type(p) is tuple for p in self.points):
            object.__setattr__(
                self, "points", tuple((float(x), float(y)) for x, y in self.points)
            )

    def with_color(self, color: int | None) -> ColoredPath:
        return ColoredPath(self.points, color)

    def to_dict(self) -> dict:
        """Plain representation used by the command line writer."""
        return {"color": self.color, "points": [[x, y] for x, y in self.points]}


def make_path(points: Sequence[Sequence[float]], color: int | None = None) -> ColoredPath | None:
    """Build a path, or return ``None`` when fewer than two points remain."""
    if len(points) < 2:
        return None
    return ColoredPath(tuple((float(p[0]), float(p[1])) for p in points), color)


def make_paths(
    polylines: Iterable[Sequence[Sequence[float]]], color: int | None = None
) -> list[ColoredPath]:
    """Build paths from raw polylines, dropping degenerate ones."""
    paths = []
    for points in polylines:
        path = make_path(points, color)
        if path is not None:
            paths.append(path)
    return paths


def recolor(paths: Iterable[ColoredPath], color: int | None) -> list[ColoredPath]:
    return [p.with_color(color) for p in paths]


# ---------------------------------------------------------------------------
# Measures
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Bounds:
    """Axis-aligned bounding box."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Point:
        return ((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)


def centroid(paths: Iterable[ColoredPath]) -> Point:
    """Mean of every vertex; ``(0, 0)`` when there are none."""
    sum_x = sum_y = 0.0
    count = 0
    for path in paths:
        for x, y in path.points:
            sum_x += x
            sum_y += y
            count += 1
    if count == 0:
        return (0.0, 0.0)
    return (sum_x / count, sum_y / count)


def bounds(paths: Iterable[ColoredPath]) -> Bounds | None:
    """Bounding box of every vertex, or ``None`` for an empty collection."""
    xs: list[float] = []
    ys: list[float] = []
    for path in paths:
        for x, y in path.points:
            xs.append(x)
            ys.append(y)
    if not xs:
        return None
    return Bounds(min(xs), min(ys), max(xs), max(ys))


def simplify_points(points: Sequence[Point], min_distance: float) -> list[Point]:
    """Collapse runs of near-duplicate vertices.

    Keeps the first point, every point at least ``min_distance`` away
    from the last kept one, and always the final point.
    """
    if len(points) < 2:
        return list(points)

    result = [points[0]]
    last = len(points) - 1
    for i in range(1, len(points)):
        prev = result[-1]
        curr = points[i]
        if math.hypot(curr[0] - prev[0], curr[1] - prev[1]) >= min_distance or i == last:
            result.append(curr)
    return result
