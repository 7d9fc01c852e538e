"""
Geometry primitives.

Polylines with ink-well tags, bounding measures, and affine transforms
shared by every node algorithm. All coordinates are drawing millimetres.
"""

from plotflow.geometry.paths import (
    Bounds,
    ColoredPath,
    Point,
    VALID_COLORS,
    bounds,
    centroid,
    make_path,
    make_paths,
    recolor,
    simplify_points,
)
from plotflow.geometry.transforms import place_paths, transform_paths, translate_paths

__all__ = [
    "Bounds",
    "ColoredPath",
    "Point",
    "VALID_COLORS",
    "bounds",
    "centroid",
    "make_path",
    "make_paths",
    "place_paths",
    "recolor",
    "simplify_points",
    "transform_paths",
    "translate_paths",
]
