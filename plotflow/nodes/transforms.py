"""Rigid transformers: one affine operation about an explicit pivot."""

from __future__ import annotations

from plotflow.geometry import ColoredPath, transform_paths, translate_paths
from plotflow.graph.params import RotateParams, ScaleParams, TranslateParams
from plotflow.nodes.context import NodeContext


def apply_translate(params: TranslateParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    return translate_paths(inputs, params.dx, params.dy)


def apply_rotate(params: RotateParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    return transform_paths(inputs, rotation=params.angle, cx=params.cx, cy=params.cy)


def apply_scale(params: ScaleParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    """Axis-aligned, possibly non-uniform, scale about ``(cx, cy)``."""
    return transform_paths(inputs, sx=params.sx, sy=params.sy, cx=params.cx, cy=params.cy)
