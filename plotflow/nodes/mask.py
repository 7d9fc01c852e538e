"""Image mask: keep the parts of the input geometry over bright pixels.

The image is stretched over the bounding box of the input (top row at
max Y).  A point survives when the brightness under it is at least
``threshold`` (below it with ``invert``).  Polylines are densified so
that no segment skips over a boundary, then cut where the keep/drop
state changes, with each cut located by bisection.
"""

from __future__ import annotations

import math

import numpy as np

from plotflow.geometry import Bounds, ColoredPath, bounds, make_path
from plotflow.graph.params import MaskParams
from plotflow.nodes.context import NodeContext
from plotflow.nodes.raster import Raster

BISECTION_STEPS = 12


class ImageMask:
    """Keep/drop predicate over drawing coordinates."""

    def __init__(self, raster: Raster, box: Bounds, params: MaskParams) -> None:
        self.raster = raster
        self.box = box
        self.threshold = params.threshold
        self.invert = params.invert
        self.feather = params.feather

    def _brightness(self, xy: np.ndarray) -> np.ndarray:
        box = self.box
        u = (xy[:, 0] - box.min_x) / box.width if box.width > 0 else np.full(len(xy), 0.5)
        v = (box.max_y - xy[:, 1]) / box.height if box.height > 0 else np.full(len(xy), 0.5)
        return self.raster.sample_many(u, v)

    def brightness(self, xy: np.ndarray) -> np.ndarray:
        """Brightness at each point, box-averaged over ``feather`` mm."""
        if self.feather <= 0:
            return self._brightness(xy)
        total = np.zeros(len(xy))
        offsets = (-self.feather, 0.0, self.feather)
        for dx in offsets:
            for dy in offsets:
                total += self._brightness(xy + np.array([dx, dy]))
        return total / 9

    def keep(self, xy: np.ndarray) -> np.ndarray:
        inside = self.brightness(xy) >= self.threshold
        return ~inside if self.invert else inside

    def boundary(self, a: np.ndarray, b: np.ndarray, keep_a: bool) -> np.ndarray:
        """Bisect segment ``a``-``b`` for the point where the state flips."""
        lo, hi = a, b
        for _ in range(BISECTION_STEPS):
            mid = (lo + hi) / 2
            if bool(self.keep(mid[None, :])[0]) == keep_a:
                lo = mid
            else:
                hi = mid
        return (lo + hi) / 2


def densify(points: np.ndarray, max_step: float) -> np.ndarray:
    """Insert vertices so no segment is longer than ``max_step``."""
    out = [points[:1]]
    for a, b in zip(points[:-1], points[1:]):
        length = float(np.hypot(*(b - a)))
        pieces = max(1, math.ceil(length / max_step)) if max_step > 0 else 1
        t = np.arange(1, pieces + 1)[:, None] / pieces
        out.append(a + (b - a) * t)
    return np.concatenate(out)


def mask_path(path: ColoredPath, mask: ImageMask, max_step: float) -> list[ColoredPath]:
    points = densify(np.asarray(path.points, dtype=np.float64), max_step)
    keep = mask.keep(points)

    pieces: list[ColoredPath] = []
    current: list[np.ndarray] = [points[0]] if keep[0] else []
    for i in range(1, len(points)):
        a, b = points[i - 1], points[i]
        if keep[i] and keep[i - 1]:
            current.append(b)
        elif keep[i - 1] and not keep[i]:
            current.append(mask.boundary(a, b, True))
            piece = make_path([tuple(p) for p in current], path.color)
            if piece is not None:
                pieces.append(piece)
            current = []
        elif keep[i] and not keep[i - 1]:
            current = [mask.boundary(a, b, False), b]
    if current:
        piece = make_path([tuple(p) for p in current], path.color)
        if piece is not None:
            pieces.append(piece)
    return pieces


def apply_mask(params: MaskParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    """Clip ``inputs`` to the image; without an image the input passes through."""
    box = bounds(inputs)
    if box is None:
        return []
    if ctx.raster is None:
        return list(inputs)

    mask = ImageMask(ctx.raster, box, params)
    max_step = math.hypot(box.width, box.height) / ctx.limits.mask.densify_divisions
    result: list[ColoredPath] = []
    for path in inputs:
        result.extend(mask_path(path, mask, max_step))
    return result
