"""
Graph model.

Node kinds, typed parameter schemas, the immutable graph snapshot and
flow document loading. Everything the evaluator reads about a node
comes through here.
"""

from plotflow.graph.io import (
    FlowDocumentError,
    graph_from_document,
    graph_to_document,
    load_flow,
    save_flow,
)
from plotflow.graph.kinds import RASTER_KINDS, NodeKind, resolve_kind
from plotflow.graph.model import Edge, Graph, Node
from plotflow.graph.params import PARAM_MODELS, NodeParams, parse_params

__all__ = [
    "Edge",
    "FlowDocumentError",
    "Graph",
    "Node",
    "NodeKind",
    "NodeParams",
    "PARAM_MODELS",
    "RASTER_KINDS",
    "graph_from_document",
    "graph_to_document",
    "load_flow",
    "parse_params",
    "resolve_kind",
    "save_flow",
]
