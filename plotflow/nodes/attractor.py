"""Strange-attractor generator.

Iterates a 4-parameter planar map from ``(0.1, 0.1)``, discards the
warm-up steps, and records ``center + v * scale`` for each remaining
step until the iteration cap or the divergence guard stops it.  The
trace is emitted as fixed-size chunks so no single stroke grows without
bound; consecutive chunks share their boundary point so the pen path
stays continuous.
"""

from __future__ import annotations

import logging
import math
from typing import Callable

from plotflow.configs.loader import AttractorLimits
from plotflow.geometry import ColoredPath, Point, make_paths
from plotflow.graph.params import AttractorParams
from plotflow.nodes.context import NodeContext

logger = logging.getLogger(__name__)

StepFn = Callable[[float, float], tuple[float, float]]

START = (0.1, 0.1)


# ---------------------------------------------------------------------------
# Maps
# ---------------------------------------------------------------------------


def make_step(kind: str, a: float, b: float, c: float, d: float) -> StepFn:
    """Return the map ``(x, y) -> (x', y')`` for an attractor variant.

    Raises
    ------
    ValueError
        For an unknown variant name.
    """
    if kind == "clifford":
        def step(x: float, y: float) -> tuple[float, float]:
            return math.sin(a * y) + c * math.cos(a * x), math.sin(b * x) + d * math.cos(b * y)
    elif kind == "dejong":
        def step(x: float, y: float) -> tuple[float, float]:
            return math.sin(a * y) - math.cos(b * x), math.sin(c * x) - math.cos(d * y)
    elif kind == "bedhead":
        def step(x: float, y: float) -> tuple[float, float]:
            return math.sin(x * y / b) * y + math.cos(a * x - y), x + math.sin(y) / b
    elif kind == "tinkerbell":
        def step(x: float, y: float) -> tuple[float, float]:
            return x * x - y * y + a * x + b * y, 2 * x * y + c * x + d * y
    elif kind == "gumowski":
        def g(v: float) -> float:
            return a * v + 2 * (1 - a) * v * v / (1 + v * v)

        def step(x: float, y: float) -> tuple[float, float]:
            nx = b * y + g(x)
            return nx, -x + g(nx)
    else:
        raise ValueError(f"Unknown attractor type {kind!r}")
    return step


def _safe_step(step: StepFn) -> StepFn:
    """Turn float errors (overflow, bedhead's b == 0) into NaN."""

    def wrapped(x: float, y: float) -> tuple[float, float]:
        try:
            return step(x, y)
        except (OverflowError, ZeroDivisionError, ValueError):
            return math.nan, math.nan

    return wrapped


# ---------------------------------------------------------------------------
# Trace
# ---------------------------------------------------------------------------


def trace(
    step: StepFn,
    iterations: int,
    limits: AttractorLimits,
    start: tuple[float, float] = START,
) -> list[tuple[float, float]]:
    """Raw orbit after warm-up, stopped early on divergence.

    Parameters
    ----------
    step : StepFn
        The map.
    iterations : int
        Number of recorded steps requested.
    limits : AttractorLimits
        Warm-up length and divergence bound.
    start : tuple[float, float]
        Initial state.

    Returns
    -------
    list[tuple[float, float]]
        One state per recorded step.  A step whose result is non-finite
        or exceeds the bound in magnitude ends the trace and is not
        recorded.
    """
    step = _safe_step(step)
    x, y = start
    for _ in range(limits.warmup_steps):
        x, y = step(x, y)

    bound = limits.divergence_bound
    orbit = []
    for i in range(iterations):
        x, y = step(x, y)
        if not (math.isfinite(x) and math.isfinite(y)) or abs(x) > bound or abs(y) > bound:
            logger.debug("Attractor diverged at iteration %d", i)
            break
        orbit.append((x, y))
    return orbit


def chunk_points(points: list[Point], chunk_size: int) -> list[list[Point]]:
    """Split into runs of at most ``chunk_size`` points sharing endpoints."""
    stride = max(1, chunk_size - 1)
    chunks = []
    for i in range(0, len(points), stride):
        chunk = points[i:i + chunk_size]
        if len(chunk) > 1:
            chunks.append(chunk)
        if i + chunk_size >= len(points):
            break
    return chunks


def generate_attractor(
    params: AttractorParams, inputs: list[ColoredPath], ctx: NodeContext
) -> list[ColoredPath]:
    limits = ctx.limits.attractor
    step = make_step(params.attractor_type, params.a, params.b, params.c, params.d)
    orbit = trace(step, params.iterations, limits)

    points = [
        (params.center_x + x * params.scale, params.center_y + y * params.scale) for x, y in orbit
    ]
    return make_paths(chunk_points(points, limits.chunk_size), params.color)
