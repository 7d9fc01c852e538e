"""plotflow: node-graph engine that turns flow documents into plotter strokes.

A flow is a graph of generator nodes (shapes, attractors, L-systems,
text, images) and transformer nodes (repetition, transforms, curve
layout, sandboxed code). Evaluating the graph pulls geometry from the
single ``output`` node and yields a list of :class:`ColoredPath`
polylines in millimetres, one polyline per pen-down stroke.

Usage::

    from plotflow import FlowCache, execute_flow, load_flow
    graph = load_flow("drawing.flow.json")
    cache = FlowCache()
    result = execute_flow(graph, cache)
"""

from plotflow.engine import ExecutionResult, FlowCache, evaluate, execute_flow
from plotflow.geometry import ColoredPath
from plotflow.graph import Edge, Graph, Node, NodeKind, load_flow

__version__ = "0.1.0"

__all__ = [
    "ColoredPath",
    "Edge",
    "ExecutionResult",
    "FlowCache",
    "Graph",
    "Node",
    "NodeKind",
    "evaluate",
    "execute_flow",
    "load_flow",
]
