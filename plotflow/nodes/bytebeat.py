"""Bytebeat formulas driving per-copy placement.

A formula is a one-line integer expression over ``t`` in the style of
bytebeat music (``t*(t>>5|t>>8)``).  It is compiled once per node into
a tree of closures and evaluated for ``t = 0 .. count-1``; the low byte
of each result places one copy of the input geometry.

Arithmetic follows JavaScript number rules, which is what formula
authors expect from the bytebeat tradition:

- operands are doubles; ``/`` and ``%`` never raise (``x/0`` is
  infinite, ``x%0`` is NaN)
- bitwise operators and shifts truncate both sides to signed 32 bits
  (non-finite values become 0)
- ``<`` and ``>`` yield 1 or 0
- ``**`` is right-associative and may not follow a bare unary operator
- ``++t`` / ``t--`` update ``t`` for the rest of the expression

Only the characters ``0-9 t + - * / % & | ^ ~ ( ) < >`` survive
sanitizing; ``>>>`` is read as ``>>``.  A formula that fails to parse,
or a result that is not finite, evaluates to 0.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Callable

from plotflow.geometry import ColoredPath, centroid, place_paths
from plotflow.graph.params import AlgorithmicParams
from plotflow.nodes.context import NodeContext

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^0-9t+\-*/%&|^~()<>]")
_TOKEN = re.compile(r"\d+|t+|\*\*|\+\+|--|<<|>>|[-+*/%&|^~()<>]")

Env = list  # one-element cell holding the current ``t``
Expr = Callable[[Env], float]


class FormulaError(ValueError):
    """Raised when a formula cannot be compiled."""


# ---------------------------------------------------------------------------
# Number semantics
# ---------------------------------------------------------------------------


def to_int32(value: float) -> int:
    """ECMAScript ToInt32."""
    if not math.isfinite(value):
        return 0
    n = int(value) & 0xFFFFFFFF
    return n - 0x1_0000_0000 if n & 0x8000_0000 else n


def _div(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _mod(a: float, b: float) -> float:
    if b == 0 or not math.isfinite(a) or math.isnan(b):
        return math.nan
    if math.isinf(b):
        return a
    return math.fmod(a, b)


def _pow(a: float, b: float) -> float:
    try:
        return math.pow(a, b)
    except OverflowError:
        return math.inf
    except ValueError:
        return math.nan


_BINARY: dict[str, Callable[[float, float], float]] = {
    "**": _pow,
    "*": lambda a, b: a * b,
    "/": _div,
    "%": _mod,
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "<<": lambda a, b: float(to_int32(to_int32(a) << (to_int32(b) & 31))),
    ">>": lambda a, b: float(to_int32(a) >> (to_int32(b) & 31)),
    "<": lambda a, b: 1.0 if a < b else 0.0,
    ">": lambda a, b: 1.0 if a > b else 0.0,
    "&": lambda a, b: float(to_int32(a) & to_int32(b)),
    "^": lambda a, b: float(to_int32(a) ^ to_int32(b)),
    "|": lambda a, b: float(to_int32(a) | to_int32(b)),
}

# (left binding power, right binding power)
_INFIX: dict[str, tuple[int, int]] = {
    "|": (10, 11),
    "^": (20, 21),
    "&": (30, 31),
    "<": (40, 41),
    ">": (40, 41),
    "<<": (50, 51),
    ">>": (50, 51),
    "+": (60, 61),
    "-": (60, 61),
    "*": (70, 71),
    "/": (70, 71),
    "%": (70, 71),
    "**": (81, 80),
}
_PREFIX_BP = 90


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def sanitize(formula: str) -> str:
    return _UNSAFE.sub("", formula).replace(">>>", ">>")


def tokenize(source: str) -> list[str]:
    tokens = []
    pos = 0
    while pos < len(source):
        match = _TOKEN.match(source, pos)
        if match is None:
            raise FormulaError(f"Unexpected character {source[pos]!r} at {pos}")
        tokens.append(match.group())
        pos = match.end()
    return tokens


class _Parser:
    """Pratt parser producing closures over an ``Env`` cell."""

    def __init__(self, tokens: list[str]) -> None:
        self.tokens = tokens
        self.pos = 0

    def peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def advance(self) -> str:
        token = self.peek()
        if token is None:
            raise FormulaError("Unexpected end of formula")
        self.pos += 1
        return token

    def parse(self) -> Expr:
        expr, _ = self.expression(0)
        if self.peek() is not None:
            raise FormulaError(f"Unexpected token {self.peek()!r}")
        return expr

    def expression(self, min_bp: int) -> tuple[Expr, bool]:
        """Return the parsed expression and whether it was a bare unary."""
        left, unary = self.prefix()
        while True:
            op = self.peek()
            if op in ("++", "--"):
                raise FormulaError(f"Invalid update target before {op!r}")
            if op not in _INFIX:
                break
            lbp, rbp = _INFIX[op]
            if lbp < min_bp:
                break
            if op == "**" and unary:
                raise FormulaError("Unary operator before '**' needs parentheses")
            self.advance()
            right, _ = self.expression(rbp)
            left = _binary(_BINARY[op], left, right)
            unary = False
        return left, unary

    def prefix(self) -> tuple[Expr, bool]:
        token = self.advance()

        if token.isdigit():
            if self.peek() is not None and self.peek().startswith("t"):
                raise FormulaError("Identifier directly after number")
            value = float(token)
            return (lambda env: value), False

        if token.startswith("t"):
            if token != "t":
                raise FormulaError(f"Unknown identifier {token!r}")
            if self.peek() in ("++", "--"):
                step = 1.0 if self.advance() == "++" else -1.0
                return _postfix_update(step), False
            return (lambda env: env[0]), False

        if token == "(":
            inner, _ = self.expression(0)
            if self.peek() != ")":
                raise FormulaError("Missing ')'")
            self.advance()
            return inner, False

        if token in ("++", "--"):
            if self.advance() != "t":
                raise FormulaError(f"Invalid update target after {token!r}")
            return _prefix_update(1.0 if token == "++" else -1.0), False

        if token in ("-", "+", "~"):
            operand, _ = self.expression(_PREFIX_BP)
            if token == "-":
                return (lambda env: -operand(env)), True
            if token == "+":
                return operand, True
            return (lambda env: float(~to_int32(operand(env)))), True

        raise FormulaError(f"Unexpected token {token!r}")


def _binary(fn: Callable[[float, float], float], left: Expr, right: Expr) -> Expr:
    return lambda env: fn(left(env), right(env))


def _prefix_update(step: float) -> Expr:
    def update(env: Env) -> float:
        env[0] += step
        return env[0]

    return update


def _postfix_update(step: float) -> Expr:
    def update(env: Env) -> float:
        old = env[0]
        env[0] = old + step
        return old

    return update


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Formula:
    """A compiled formula; :meth:`__call__` returns a byte (0-255)."""

    source: str
    expr: Expr | None
    error: str | None = None

    def __call__(self, t: int) -> int:
        if self.expr is None:
            return 0
        try:
            result = self.expr([float(t)])
        except RecursionError:
            return 0
        if not math.isfinite(result):
            return 0
        return to_int32(result) & 0xFF


def compile_formula(formula: str) -> Formula:
    """Sanitize and compile ``formula``; never raises.

    An uncompilable formula yields a :class:`Formula` that evaluates to 0
    for every ``t`` and carries the parse error in ``error``.
    """
    source = sanitize(formula)
    try:
        expr = _Parser(tokenize(source)).parse()
    except (FormulaError, RecursionError) as exc:
        logger.debug("Formula %r does not compile: %s", source, exc)
        return Formula(source, None, str(exc))
    return Formula(source, expr)


def placement(mode: str, val: int, params: AlgorithmicParams) -> tuple[float, float, float, float]:
    """Map one byte to ``(dx, dy, rotation, scale)`` for ``mode``."""
    if mode == "position":
        return val * params.x_scale, (val >> 4) * params.y_scale, 0.0, 1.0
    if mode == "rotation":
        return 0.0, 0.0, val * params.rot_scale, 1.0
    if mode == "scale":
        return 0.0, 0.0, 0.0, 0.5 + val * params.scl_scale
    if mode == "all":
        return (
            (val & 0x0F) * params.x_scale,
            ((val >> 4) & 0x0F) * params.y_scale,
            (val & 0x1F) * params.rot_scale,
            0.5 + (val >> 5) * params.scl_scale,
        )
    raise ValueError(f"Unknown bytebeat mode {mode!r}")


def apply_algorithmic(
    params: AlgorithmicParams, inputs: list[ColoredPath], ctx: NodeContext
) -> list[ColoredPath]:
    """One placed copy of ``inputs`` per ``t``, capped by configuration."""
    if not inputs:
        return []
    formula = compile_formula(params.formula)
    count = min(params.count, ctx.limits.bytebeat.max_count)
    pivot = centroid(inputs)

    result: list[ColoredPath] = []
    for t in range(count):
        dx, dy, rotation, scale = placement(params.mode, formula(t), params)
        result.extend(
            place_paths(
                inputs,
                params.base_x + dx,
                params.base_y + dy,
                rotation=rotation,
                scale=scale,
                pivot=pivot,
            )
        )
    return result
