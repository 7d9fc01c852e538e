"""Repetition transformers: repeat, grid and radial copies of the input.

Copies are emitted in generation order (copy 0 first; grid rows outer,
columns inner) and each copy keeps the input's path order and colors.
"""

from __future__ import annotations

import math

from plotflow.geometry import ColoredPath, centroid, place_paths, transform_paths
from plotflow.graph.params import GridParams, RadialParams, RepeatParams
from plotflow.nodes.context import NodeContext


def apply_repeat(params: RepeatParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    """Copy ``i`` is offset by ``i * offset``, turned ``i * rotation``, scaled ``scale ** i``.

    Rotation and scale pivot on the input centroid.
    """
    if not inputs:
        return []
    cx, cy = centroid(inputs)
    result: list[ColoredPath] = []
    for i in range(params.count):
        s = params.scale ** i
        result.extend(
            transform_paths(
                inputs,
                params.offset_x * i,
                params.offset_y * i,
                params.rotation * i,
                s,
                s,
                cx,
                cy,
            )
        )
    return result


def apply_grid(params: GridParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    if not inputs:
        return []
    pivot = centroid(inputs)
    result: list[ColoredPath] = []
    for row in range(params.rows):
        for col in range(params.cols):
            result.extend(
                place_paths(
                    inputs,
                    params.start_x + col * params.spacing_x,
                    params.start_y + row * params.spacing_y,
                    pivot=pivot,
                )
            )
    return result


def apply_radial(params: RadialParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    """Copies on a circle, each turned by its angular position."""
    if not inputs:
        return []
    pivot = centroid(inputs)
    result: list[ColoredPath] = []
    for i in range(params.count):
        angle = params.start_angle + (i / params.count) * 360
        rad = math.radians(angle)
        result.extend(
            place_paths(
                inputs,
                params.cx + math.cos(rad) * params.radius,
                params.cy + math.sin(rad) * params.radius,
                rotation=angle,
                pivot=pivot,
            )
        )
    return result
