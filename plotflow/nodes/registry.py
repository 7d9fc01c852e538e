"""Node kind -> algorithm dispatch table.

Every handler has the signature ``(params, inputs, ctx)`` and returns
the node's paths.  The ``code`` handler alone returns a
:class:`~plotflow.nodes.code.SandboxResult`, carrying an error message
instead of raising; :func:`run_node` folds both shapes into a
:class:`NodeOutput`.

Structural kinds are in the table too: the evaluator gathers their
inputs (group children, output sources) and the handler concatenates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from plotflow.geometry import ColoredPath
from plotflow.graph.kinds import NodeKind
from plotflow.graph.params import NodeParams
from plotflow.nodes.ascii_art import generate_ascii
from plotflow.nodes.attractor import generate_attractor
from plotflow.nodes.batak import generate_batak
from plotflow.nodes.bytebeat import apply_algorithmic
from plotflow.nodes.code import SandboxResult, apply_code
from plotflow.nodes.context import NodeContext
from plotflow.nodes.halftone import generate_halftone
from plotflow.nodes.iteration import apply_grid, apply_radial, apply_repeat
from plotflow.nodes.layout import apply_path_layout
from plotflow.nodes.lsystem import apply_lsystem
from plotflow.nodes.mask import apply_mask
from plotflow.nodes.shapes import (
    generate_arc,
    generate_circle,
    generate_ellipse,
    generate_line,
    generate_polygon,
    generate_rect,
)
from plotflow.nodes.text import generate_text
from plotflow.nodes.transforms import apply_rotate, apply_scale, apply_translate

Handler = Callable[[Any, list[ColoredPath], NodeContext], Any]


def concatenate(params: NodeParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    return list(inputs)


def no_geometry(params: NodeParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    return []


HANDLERS: dict[NodeKind, Handler] = {
    NodeKind.LINE: generate_line,
    NodeKind.RECT: generate_rect,
    NodeKind.CIRCLE: generate_circle,
    NodeKind.ELLIPSE: generate_ellipse,
    NodeKind.ARC: generate_arc,
    NodeKind.POLYGON: generate_polygon,
    NodeKind.TEXT: generate_text,
    NodeKind.BATAK: generate_batak,
    NodeKind.ATTRACTOR: generate_attractor,
    NodeKind.IMAGE: no_geometry,
    NodeKind.HALFTONE: generate_halftone,
    NodeKind.ASCII: generate_ascii,
    NodeKind.MASK: apply_mask,
    NodeKind.REPEAT: apply_repeat,
    NodeKind.GRID: apply_grid,
    NodeKind.RADIAL: apply_radial,
    NodeKind.TRANSLATE: apply_translate,
    NodeKind.ROTATE: apply_rotate,
    NodeKind.SCALE: apply_scale,
    NodeKind.PATH: apply_path_layout,
    NodeKind.ALGORITHMIC: apply_algorithmic,
    NodeKind.LSYSTEM: apply_lsystem,
    NodeKind.CODE: apply_code,
    NodeKind.GROUP: concatenate,
    NodeKind.OUTPUT: concatenate,
}

_missing = set(NodeKind) - set(HANDLERS)
if _missing:
    raise RuntimeError(f"No handler for node kinds: {sorted(k.value for k in _missing)}")


@dataclass(frozen=True)
class NodeOutput:
    """Paths of one node plus its error message, if it failed softly."""

    paths: list[ColoredPath] = field(default_factory=list)
    error: str | None = None


def run_node(
    kind: NodeKind, params: NodeParams, inputs: list[ColoredPath], ctx: NodeContext
) -> NodeOutput:
    """Dispatch to the handler for ``kind``; exceptions propagate."""
    out = HANDLERS[kind](params, inputs, ctx)
    if isinstance(out, SandboxResult):
        return NodeOutput(list(out.paths), out.error)
    return NodeOutput(list(out))
