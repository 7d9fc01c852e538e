"""Wave halftone: parallel scan lines modulated by image darkness.

The image is stretched over an ``outputWidth x outputHeight`` frame with
its lower-left corner at the origin.  Scan lines ``lineSpacing`` apart
cross the frame at ``angle`` degrees; along each line a waveform is
displaced perpendicular to the line with an amplitude that grows with
the darkness under it.
"""

from __future__ import annotations

import math

import numpy as np

from plotflow.geometry import ColoredPath, make_paths
from plotflow.graph.params import HalftoneParams
from plotflow.nodes.context import NodeContext
from plotflow.nodes.raster import Raster


def waveform(mode: str, phase: np.ndarray) -> np.ndarray:
    """Unit-amplitude wave; ``phase`` is measured in cycles."""
    frac = phase - np.floor(phase)
    if mode == "sine":
        return np.sin(2 * math.pi * phase)
    if mode == "zigzag":
        return 2 * frac - 1
    if mode == "square":
        return np.where(frac < 0.5, 1.0, -1.0)
    if mode == "triangle":
        return 1 - 4 * np.abs(frac - 0.5)
    raise ValueError(f"Unknown halftone mode {mode!r}")


def frame_uv(
    x: np.ndarray, y: np.ndarray, width: float, height: float, flip_x: bool, flip_y: bool
) -> tuple[np.ndarray, np.ndarray]:
    """Map frame coordinates to image coordinates (v = 0 is the top row).

    With ``flip_y`` the image's top row lands at the top of the frame
    (max Y), which is how it reads once the plot preview flips the Y axis.
    """
    u = x / width
    v = y / height
    if flip_x:
        u = 1 - u
    if flip_y:
        v = 1 - v
    return u, v


def darkness_at(raster: Raster, u: np.ndarray, v: np.ndarray, invert: bool) -> np.ndarray:
    brightness = raster.sample_many(u, v)
    return brightness if invert else 1 - brightness


def _runs(points: np.ndarray, keep: np.ndarray) -> list[np.ndarray]:
    """Split ``points`` into maximal runs where ``keep`` is true."""
    runs = []
    edges = np.flatnonzero(np.diff(np.concatenate(([0], keep.astype(np.int8), [0]))))
    for start, stop in zip(edges[::2], edges[1::2]):
        if stop - start >= 2:
            runs.append(points[start:stop])
    return runs


def halftone_lines(params: HalftoneParams, raster: Raster) -> list[list[tuple[float, float]]]:
    """Scan-line polylines for ``raster`` under ``params``."""
    width, height = params.output_width, params.output_height
    step = min(params.wave_length / 8, width / params.sample_resolution)
    rad = math.radians(params.angle)
    direction = np.array([math.cos(rad), math.sin(rad)])
    normal = np.array([-math.sin(rad), math.cos(rad)])
    center = np.array([width / 2, height / 2])
    reach = math.hypot(width, height) / 2

    s = np.arange(-reach, reach + step / 2, step)
    span = params.max_amplitude - params.min_amplitude
    eps = 1e-9

    polylines = []
    for offset in np.arange(-reach, reach + params.line_spacing / 2, params.line_spacing):
        base = center + normal * offset + np.outer(s, direction)
        x, y = base[:, 0], base[:, 1]
        inside = (x >= -eps) & (x <= width + eps) & (y >= -eps) & (y <= height + eps)
        if inside.sum() < 2:
            continue

        u, v = frame_uv(x, y, width, height, params.flip_x, params.flip_y)
        dark = darkness_at(raster, u, v, params.invert)
        keep = inside
        if params.skip_white:
            keep = keep & (1 - dark < params.white_threshold)

        amplitude = params.min_amplitude + dark * span
        displacement = amplitude * waveform(params.mode, (s + reach) / params.wave_length)
        points = base + np.outer(displacement, normal)
        for run in _runs(points, keep):
            polylines.append([(px, py) for px, py in run.tolist()])
    return polylines


def generate_halftone(params: HalftoneParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    if ctx.raster is None:
        return []
    return make_paths(halftone_lines(params, ctx.raster), params.color)
