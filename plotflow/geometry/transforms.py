"""Affine transforms over path collections.

All functions return new :class:`ColoredPath` objects and preserve each
input path's color.  Angles are in degrees, positive counter-clockwise
in the usual x-right / y-up math convention.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from plotflow.geometry.paths import ColoredPath, centroid


def _apply(paths: Sequence[ColoredPath], fn) -> list[ColoredPath]:
    """Run ``fn`` over all vertices at once, then split back per path."""
    if not paths:
        return []
    lengths = [len(p.points) for p in paths]
    pts = np.array([pt for p in paths for pt in p.points], dtype=np.float64)
    out = fn(pts).tolist()

    result = []
    start = 0
    for path, n in zip(paths, lengths):
        result.append(ColoredPath(tuple(map(tuple, out[start:start + n])), path.color))
        start += n
    return result


def transform_paths(
    paths: Sequence[ColoredPath],
    tx: float = 0.0,
    ty: float = 0.0,
    rotation: float = 0.0,
    sx: float = 1.0,
    sy: float | None = None,
    cx: float = 0.0,
    cy: float = 0.0,
) -> list[ColoredPath]:
    """Scale and rotate about ``(cx, cy)``, then translate by ``(tx, ty)``.

    Parameters
    ----------
    paths : sequence of ColoredPath
        Input geometry.
    tx, ty : float
        Translation applied last.
    rotation : float
        Degrees about the pivot.
    sx, sy : float
        Axis-aligned scale about the pivot; ``sy=None`` means uniform.
    cx, cy : float
        Pivot.

    Returns
    -------
    list[ColoredPath]
        Transformed copies with colors preserved.
    """
    if sy is None:
        sy = sx
    rad = math.radians(rotation)
    cos_r, sin_r = math.cos(rad), math.sin(rad)
    scale = np.array([sx, sy])
    pivot = np.array([cx, cy])
    shift = pivot + np.array([tx, ty])

    def fn(pts: np.ndarray) -> np.ndarray:
        local = (pts - pivot) * scale
        rotated = np.empty_like(local)
        rotated[:, 0] = local[:, 0] * cos_r - local[:, 1] * sin_r
        rotated[:, 1] = local[:, 0] * sin_r + local[:, 1] * cos_r
        return rotated + shift

    return _apply(paths, fn)


def translate_paths(paths: Sequence[ColoredPath], dx: float, dy: float) -> list[ColoredPath]:
    offset = np.array([dx, dy])
    return _apply(paths, lambda pts: pts + offset)


def place_paths(
    paths: Sequence[ColoredPath],
    x: float,
    y: float,
    rotation: float = 0.0,
    scale: float = 1.0,
    pivot: tuple[float, float] | None = None,
) -> list[ColoredPath]:
    """Rotate/scale about the collection centroid, then move it to ``(x, y)``.

    ``pivot`` may be passed when the caller already knows the centroid.
    """
    cx, cy = centroid(paths) if pivot is None else pivot
    return transform_paths(paths, x - cx, y - cy, rotation, scale, scale, cx, cy)
