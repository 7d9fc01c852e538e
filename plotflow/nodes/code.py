"""The ``code`` node: user programs run against a drawing capability table.

A program sees exactly these names besides the safe builtins:

- ``input``: upstream geometry as a list of paths, each a list of
  ``[x, y]`` lists (a private copy the program may mutate)
- ``api``: namespace of the capability functions below
- ``Math``: restricted math namespace (radians)
- every capability function directly (``line(...)`` == ``api.line(...)``)

It must ``return`` a list of paths.  The result is deep-validated: every
path needs at least two ``[x, y]`` points of finite numbers.  Anything
else fails the node with an error message and no geometry.

A returned path identical to one of the input paths keeps that input
path's color; new or modified geometry takes the node's own ``color``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Mapping, Sequence

from plotflow.configs.loader import SandboxLimits
from plotflow.geometry import ColoredPath, Point
from plotflow.graph.params import CodeParams
from plotflow.nodes.bytebeat import to_int32
from plotflow.nodes.context import NodeContext
from plotflow.nodes.sandbox import (
    Namespace,
    SandboxError,
    SandboxOutputError,
    SandboxProgram,
    SandboxRuntimeError,
)

logger = logging.getLogger(__name__)

DEFAULT_RANDOM_SEED = 12345
DEFAULT_NOISE_SEED = 0


# ---------------------------------------------------------------------------
# Seeded randomness
# ---------------------------------------------------------------------------


class LCG:
    """Linear congruential generator returning floats in [0, 1].

    ``state = (state * 1103515245 + 12345) & 0x7fffffff`` evaluated in
    double precision with a signed 32-bit mask, so a seed yields the same
    sequence as the editor's preview.
    """

    MULTIPLIER = 1103515245.0
    INCREMENT = 12345.0
    MASK = 0x7FFFFFFF

    def __init__(self, seed: float = DEFAULT_RANDOM_SEED) -> None:
        self.seed(seed)

    def seed(self, seed: float) -> None:
        self._state = float(seed)

    def next(self) -> float:
        self._state = float(to_int32(self._state * self.MULTIPLIER + self.INCREMENT) & self.MASK)
        return self._state / self.MASK


class PerlinNoise:
    """Classic 3D Perlin noise mapped to [0, 1].

    The permutation table is shuffled by an :class:`LCG` so that noise is
    reproducible for a given seed.
    """

    def __init__(self, seed: float = DEFAULT_NOISE_SEED) -> None:
        self.seed(seed)

    def seed(self, seed: float) -> None:
        rng = LCG(seed)
        perm = list(range(256))
        for i in range(255, 0, -1):
            j = min(i, math.floor(rng.next() * (i + 1)))
            perm[i], perm[j] = perm[j], perm[i]
        self._p = perm + perm

    @staticmethod
    def _fade(t: float) -> float:
        return t * t * t * (t * (t * 6 - 15) + 10)

    @staticmethod
    def _grad(hash_: int, x: float, y: float, z: float) -> float:
        h = hash_ & 15
        u = x if h < 8 else y
        v = y if h < 4 else (x if h in (12, 14) else z)
        return (u if h & 1 == 0 else -u) + (v if h & 2 == 0 else -v)

    def __call__(self, x: float, y: float = 0.0, z: float = 0.0) -> float:
        p = self._p
        fx, fy, fz = math.floor(x), math.floor(y), math.floor(z)
        X, Y, Z = int(fx) & 255, int(fy) & 255, int(fz) & 255
        x, y, z = x - fx, y - fy, z - fz
        u, v, w = self._fade(x), self._fade(y), self._fade(z)

        A = p[X] + Y
        AA = p[A] + Z
        AB = p[A + 1] + Z
        B = p[X + 1] + Y
        BA = p[B] + Z
        BB = p[B + 1] + Z

        def lerp(a: float, b: float, t: float) -> float:
            return a + t * (b - a)

        grad = self._grad
        value = lerp(
            lerp(
                lerp(grad(p[AA], x, y, z), grad(p[BA], x - 1, y, z), u),
                lerp(grad(p[AB], x, y - 1, z), grad(p[BB], x - 1, y - 1, z), u),
                v,
            ),
            lerp(
                lerp(grad(p[AA + 1], x, y, z - 1), grad(p[BA + 1], x - 1, y, z - 1), u),
                lerp(grad(p[AB + 1], x, y - 1, z - 1), grad(p[BB + 1], x - 1, y - 1, z - 1), u),
                v,
            ),
            w,
        )
        return value * 0.5 + 0.5


# ---------------------------------------------------------------------------
# Capability table
# ---------------------------------------------------------------------------


def _count(name: str, value: Any, limits: SandboxLimits) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != int(value):
        raise SandboxRuntimeError(f"{name} must be a whole number, got {value!r}")
    count = int(value)
    if not 1 <= count <= limits.max_sequence:
        raise SandboxRuntimeError(f"{name} must be between 1 and {limits.max_sequence}, got {count}")
    return count


def _as_paths(name: str, paths: Any) -> list[list[Point]]:
    try:
        return [[(float(pt[0]), float(pt[1])) for pt in path] for path in paths]
    except (TypeError, ValueError, IndexError) as exc:
        raise SandboxRuntimeError(f"{name}() expects a list of paths of [x, y] points") from exc


def _map_points(name: str, paths: Any, fn: Callable[[float, float], tuple[float, float]]) -> list:
    return [[list(fn(x, y)) for x, y in path] for path in _as_paths(name, paths)]


def _affine(tx: float, ty: float, rotation: float, sx: float, sy: float, cx: float, cy: float):
    rad = math.radians(rotation)
    cos_r, sin_r = math.cos(rad), math.sin(rad)

    def fn(x: float, y: float) -> tuple[float, float]:
        lx, ly = (x - cx) * sx, (y - cy) * sy
        return lx * cos_r - ly * sin_r + cx + tx, lx * sin_r + ly * cos_r + cy + ty

    return fn


@dataclass
class DrawingApi:
    """State behind one program execution (PRNG and noise are per run)."""

    limits: SandboxLimits = field(default_factory=SandboxLimits)
    rng: LCG = field(default_factory=LCG)
    perlin: PerlinNoise = field(default_factory=PerlinNoise)

    # -- shapes -------------------------------------------------------------

    def line(self, x1: float, y1: float, x2: float, y2: float) -> list:
        return [[x1, y1], [x2, y2]]

    def rect(self, x: float, y: float, w: float, h: float) -> list:
        return [[x, y], [x + w, y], [x + w, y + h], [x, y + h], [x, y]]

    def ellipse(self, cx: float, cy: float, rx: float, ry: float, segments: int = 36) -> list:
        n = _count("segments", segments, self.limits)
        return [
            [cx + math.cos(i / n * math.tau) * rx, cy + math.sin(i / n * math.tau) * ry]
            for i in range(n + 1)
        ]

    def circle(self, cx: float, cy: float, r: float, segments: int = 36) -> list:
        return self.ellipse(cx, cy, r, r, segments)

    def arc(
        self, cx: float, cy: float, r: float, start_angle: float, end_angle: float, segments: int = 24
    ) -> list:
        """Arc between two angles in degrees."""
        n = _count("segments", segments, self.limits)
        start = math.radians(start_angle)
        span = math.radians(end_angle) - start
        return [
            [cx + math.cos(start + i / n * span) * r, cy + math.sin(start + i / n * span) * r]
            for i in range(n + 1)
        ]

    def polygon(self, sides: int, cx: float, cy: float, r: float) -> list:
        n = _count("sides", sides, self.limits)
        return [
            [
                cx + math.cos(i / n * math.tau - math.pi / 2) * r,
                cy + math.sin(i / n * math.tau - math.pi / 2) * r,
            ]
            for i in range(n + 1)
        ]

    def polyline(self, points: Sequence[Sequence[float]]) -> list:
        try:
            return [[p[0], p[1]] for p in points]
        except (TypeError, IndexError) as exc:
            raise SandboxRuntimeError("polyline() expects a list of [x, y] points") from exc

    # -- transforms ---------------------------------------------------------

    def transform(
        self,
        paths: Any,
        tx: float,
        ty: float,
        rotation: float = 0.0,
        scale: float = 1.0,
        cx: float = 0.0,
        cy: float = 0.0,
    ) -> list:
        return _map_points("transform", paths, _affine(tx, ty, rotation, scale, scale, cx, cy))

    def translate(self, paths: Any, dx: float, dy: float) -> list:
        return _map_points("translate", paths, lambda x, y: (x + dx, y + dy))

    def rotate(self, paths: Any, angle: float, cx: float = 0.0, cy: float = 0.0) -> list:
        return _map_points("rotate", paths, _affine(0.0, 0.0, angle, 1.0, 1.0, cx, cy))

    def scale(self, paths: Any, sx: float, sy: float | None = None, cx: float = 0.0, cy: float = 0.0) -> list:
        return _map_points("scale", paths, _affine(0.0, 0.0, 0.0, sx, sx if sy is None else sy, cx, cy))

    def centroid(self, paths: Any) -> list:
        points = [pt for path in _as_paths("centroid", paths) for pt in path]
        if not points:
            return [0.0, 0.0]
        return [sum(x for x, _ in points) / len(points), sum(y for _, y in points) / len(points)]

    def bounds(self, paths: Any) -> dict:
        """``{minX, minY, maxX, maxY}``; infinite when ``paths`` is empty."""
        points = [pt for path in _as_paths("bounds", paths) for pt in path]
        if not points:
            return {"minX": math.inf, "minY": math.inf, "maxX": -math.inf, "maxY": -math.inf}
        xs = [x for x, _ in points]
        ys = [y for _, y in points]
        return {"minX": min(xs), "minY": min(ys), "maxX": max(xs), "maxY": max(ys)}

    # -- randomness ---------------------------------------------------------

    def random(self, low: float | None = None, high: float | None = None) -> float:
        """``random()`` in [0, 1], ``random(n)`` in [0, n], ``random(a, b)`` in [a, b]."""
        r = self.rng.next()
        if low is None:
            return r
        if high is None:
            return r * low
        return low + r * (high - low)

    def random_seed(self, seed: float) -> None:
        self.rng = LCG(seed)

    def noise(self, x: float, y: float = 0.0, z: float = 0.0) -> float:
        return self.perlin(x, y, z)

    def noise_seed(self, seed: float) -> None:
        self.perlin = PerlinNoise(seed)

    # -- namespaces ---------------------------------------------------------

    def capabilities(self) -> dict[str, Any]:
        """Name -> value table exposed as ``api`` and as top-level names."""
        return {
            "line": self.line,
            "rect": self.rect,
            "circle": self.circle,
            "ellipse": self.ellipse,
            "arc": self.arc,
            "polygon": self.polygon,
            "polyline": self.polyline,
            "transform": self.transform,
            "translate": self.translate,
            "rotate": self.rotate,
            "scale": self.scale,
            "centroid": self.centroid,
            "bounds": self.bounds,
            "random": self.random,
            "randomSeed": self.random_seed,
            "noise": self.noise,
            "noiseSeed": self.noise_seed,
            "map": lambda value, in_min, in_max, out_min, out_max: (
                (value - in_min) / (in_max - in_min) * (out_max - out_min) + out_min
            ),
            "lerp": lambda a, b, t: a + (b - a) * t,
            "constrain": lambda value, low, high: max(low, min(high, value)),
            "dist": lambda x1, y1, x2, y2: math.hypot(x2 - x1, y2 - y1),
            # degrees
            "sin": lambda deg: math.sin(math.radians(deg)),
            "cos": lambda deg: math.cos(math.radians(deg)),
            "tan": lambda deg: math.tan(math.radians(deg)),
            "atan2": lambda y, x: math.degrees(math.atan2(y, x)),
            "radians": math.radians,
            "degrees": math.degrees,
            "PI": math.pi,
            "TWO_PI": math.tau,
            "HALF_PI": math.pi / 2,
        }

    def math_namespace(self) -> Namespace:
        return Namespace(
            "Math",
            {
                "abs": abs,
                "ceil": math.ceil,
                "floor": math.floor,
                "round": lambda x: math.floor(x + 0.5),
                "min": min,
                "max": max,
                "pow": math.pow,
                "sqrt": math.sqrt,
                "sin": math.sin,
                "cos": math.cos,
                "tan": math.tan,
                "atan": math.atan,
                "atan2": math.atan2,
                "asin": math.asin,
                "acos": math.acos,
                "log": math.log,
                "exp": math.exp,
                "random": lambda: self.random(),
                "PI": math.pi,
                "E": math.e,
            },
        )

    def environment(self, inputs: Sequence[ColoredPath]) -> dict[str, Any]:
        caps = self.capabilities()
        return {
            **caps,
            "api": Namespace("api", caps),
            "Math": self.math_namespace(),
            "input": [[[x, y] for x, y in path.points] for path in inputs],
        }


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SandboxResult:
    """Geometry produced by a program, or the reason it produced none."""

    paths: list[ColoredPath]
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_output(
    value: Any,
    color: int | None = None,
    inherited: Mapping[tuple[Point, ...], int | None] | None = None,
) -> list[ColoredPath]:
    """Check that ``value`` is a list of paths and convert it.

    Paths whose points match an entry of ``inherited`` exactly keep that
    entry's color; every other path is tagged with ``color``.

    Raises
    ------
    SandboxOutputError
        Naming the first offending path or point.
    """
    if not isinstance(value, (list, tuple)):
        raise SandboxOutputError(f"Code must return a list of paths, got {type(value).__name__}")

    paths = []
    for i, path in enumerate(value):
        if not isinstance(path, (list, tuple)):
            raise SandboxOutputError(f"Path {i} must be a list of points, got {type(path).__name__}")
        if len(path) < 2:
            raise SandboxOutputError(f"Path {i} has {len(path)} point(s); at least 2 are required")
        points = []
        for j, point in enumerate(path):
            if not isinstance(point, (list, tuple)) or len(point) < 2:
                raise SandboxOutputError(f"Path {i} point {j} must be an [x, y] pair")
            x, y = point[0], point[1]
            if not (_is_number(x) and _is_number(y)):
                raise SandboxOutputError(f"Path {i} point {j} has non-numeric coordinates")
            try:
                fx, fy = float(x), float(y)
            except OverflowError as exc:
                raise SandboxOutputError(f"Path {i} point {j} has a coordinate too large for a float") from exc
            if not (math.isfinite(fx) and math.isfinite(fy)):
                raise SandboxOutputError(f"Path {i} point {j} has non-finite coordinates")
            points.append((fx, fy))
        key = tuple(points)
        paths.append(ColoredPath(key, inherited.get(key, color) if inherited else color))
    return paths


@lru_cache(maxsize=64)
def compile_program(source: str) -> SandboxProgram:
    """Parse and validate ``source``; raises :class:`SandboxError` subclasses."""
    return SandboxProgram(source)


def execute_code(
    code: str,
    inputs: Sequence[ColoredPath],
    limits: SandboxLimits | None = None,
    color: int | None = None,
) -> list[ColoredPath]:
    """Run ``code`` against ``inputs`` and return validated geometry.

    Raises
    ------
    SandboxError
        Any subclass, for syntax, security, runtime, limit and output
        failures.
    """
    limits = limits or SandboxLimits()
    program = compile_program(code)
    api = DrawingApi(limits)
    inherited: dict[tuple[Point, ...], int | None] = {}
    for path in inputs:
        inherited.setdefault(path.points, path.color)
    paths = validate_output(program.run(api.environment(inputs), limits), color, inherited)
    logger.debug("Program returned %d paths", len(paths))
    return paths


def run_code_node(
    code: str,
    inputs: Sequence[ColoredPath],
    limits: SandboxLimits | None = None,
    color: int | None = None,
) -> SandboxResult:
    """Like :func:`execute_code` but reports failure as ``SandboxResult([], message)``."""
    try:
        return SandboxResult(execute_code(code, inputs, limits, color))
    except SandboxError as exc:
        return SandboxResult([], f"{type(exc).__name__}: {exc}")


def apply_code(params: CodeParams, inputs: list[ColoredPath], ctx: NodeContext) -> SandboxResult:
    return run_code_node(params.code, inputs, ctx.limits.sandbox, params.color)
