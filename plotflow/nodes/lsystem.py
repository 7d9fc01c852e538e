"""Lindenmayer-system turtle that stamps upstream geometry.

The axiom is rewritten ``iterations`` times by the rule set, then a
turtle walks the result.  Every draw symbol places one copy of the
input geometry, centred on the turtle and turned to its heading.

Symbols::

    F G A B 0 1 6 7 8 9   place a copy, then step forward
    f                     step forward without placing
    + / -                 turn by +angle / -angle
    [ / ]                 push / pop (x, y, heading, scale); push also
                          multiplies the scale by scalePerIter
    |                     turn around
"""

from __future__ import annotations

import logging
import math

from plotflow.configs.loader import LSystemLimits
from plotflow.geometry import ColoredPath, centroid, place_paths
from plotflow.graph.params import LSystemParams
from plotflow.nodes.context import NodeContext

logger = logging.getLogger(__name__)

DRAW_SYMBOLS = frozenset("FGAB016789")


def parse_rules(text: str) -> dict[str, str]:
    """Parse ``"F=F+F,X=FX"`` into ``{"F": "F+F", "X": "FX"}``.

    Entries without ``=`` or with an empty left side are ignored; text
    after a second ``=`` is dropped.
    """
    rules: dict[str, str] = {}
    for part in text.split(","):
        pieces = part.split("=")
        if len(pieces) < 2:
            continue
        key = pieces[0].strip()
        if key:
            rules[key] = pieces[1].strip()
    return rules


def expand(axiom: str, rules: dict[str, str], iterations: int, max_length: int) -> str:
    """Apply the rules ``iterations`` times.

    Rewriting stops after the first complete iteration whose result is
    longer than ``max_length``; that result is returned whole.
    """
    current = axiom
    for _ in range(iterations):
        current = "".join(rules.get(symbol, symbol) for symbol in current)
        if len(current) > max_length:
            logger.debug("L-system expansion passed the %d symbol ceiling", max_length)
            break
    return current


def interpret(
    program: str,
    inputs: list[ColoredPath],
    params: LSystemParams,
    limits: LSystemLimits,
) -> list[ColoredPath]:
    """Walk ``program`` with the turtle and collect the placed copies."""
    pivot = centroid(inputs)
    x, y = params.start_x, params.start_y
    heading = params.start_angle
    scale = 1.0
    stack: list[tuple[float, float, float, float]] = []
    result: list[ColoredPath] = []

    for symbol in program:
        if symbol in DRAW_SYMBOLS or symbol == "f":
            if symbol != "f":
                result.extend(place_paths(inputs, x, y, heading + 90, scale, pivot=pivot))
                if len(result) > limits.max_paths:
                    logger.debug("L-system stopped past the %d path ceiling", limits.max_paths)
                    return result
            rad = math.radians(heading)
            x += math.cos(rad) * params.step_size * scale
            y += math.sin(rad) * params.step_size * scale
        elif symbol == "+":
            heading += params.angle
        elif symbol == "-":
            heading -= params.angle
        elif symbol == "[":
            stack.append((x, y, heading, scale))
            scale *= params.scale_per_iter
        elif symbol == "]":
            if stack:
                x, y, heading, scale = stack.pop()
        elif symbol == "|":
            heading += 180
    return result


def apply_lsystem(params: LSystemParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    if not inputs:
        return []
    limits = ctx.limits.lsystem
    program = expand(params.axiom, parse_rules(params.rules), params.iterations, limits.max_length)
    return interpret(program, inputs, params, limits)
