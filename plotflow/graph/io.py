"""Reading and writing persisted flow documents.

A flow document is the editor's saved state::

    {"nodes": [{"id": "c1", "type": "circle", "position": {...},
                "data": {"radius": 20, ...}}, ...],
     "edges": [{"id": "e1", "source": "c1", "target": "out"}, ...]}

JSON (``.json``) and YAML (anything else) are accepted.  Loading is
tolerant of mid-edit documents: nodes of unknown kind, malformed
entries and duplicate ids are skipped with a warning, and edges that
point at missing nodes are kept but ignored by the evaluator.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

import yaml

from plotflow.graph.kinds import resolve_kind
from plotflow.graph.model import Edge, Graph, Node
from plotflow.utils import fs

logger = logging.getLogger(__name__)

# Top-level node keys that carry identity or parameters; everything else
# (position, selected, dragging, measured, width, height, zIndex...) is
# canvas state.
_NODE_KEYS = frozenset({"id", "kind", "type", "data", "parentId", "parentNode"})


class FlowDocumentError(Exception):
    """Raised when a document cannot be read as a flow at all."""


def _node_from_entry(entry: Any) -> Node | None:
    if not isinstance(entry, Mapping):
        logger.warning("Skipping node entry that is not a mapping: %r", entry)
        return None

    node_id = entry.get("id")
    if not isinstance(node_id, str) or not node_id:
        logger.warning("Skipping node without a string id: %r", node_id)
        return None

    data = entry.get("data")
    if not isinstance(data, Mapping):
        data = {}

    raw_kind = entry.get("kind", entry.get("type"))
    kind = resolve_kind(raw_kind, data.get("label"))
    if kind is None:
        logger.warning("Skipping node %r of unknown kind %r", node_id, raw_kind)
        return None

    parent = entry.get("parentId", entry.get("parentNode"))
    return Node(
        id=node_id,
        kind=kind,
        data=data,
        parent_id=parent if isinstance(parent, str) and parent else None,
        ui={k: v for k, v in entry.items() if k not in _NODE_KEYS},
    )


def _edge_from_entry(entry: Any) -> Edge | None:
    if not isinstance(entry, Mapping):
        logger.warning("Skipping edge entry that is not a mapping: %r", entry)
        return None
    source, target = entry.get("source"), entry.get("target")
    if not isinstance(source, str) or not isinstance(target, str):
        logger.warning("Skipping edge %r without string endpoints", entry.get("id"))
        return None

    def handle(key: str) -> str | None:
        value = entry.get(key)
        return value if isinstance(value, str) and value else None

    return Edge(
        source=source,
        target=target,
        source_handle=handle("sourceHandle"),
        target_handle=handle("targetHandle"),
        id=handle("id"),
    )


def graph_from_document(doc: Any) -> Graph:
    """Build a :class:`Graph` from a loaded document mapping.

    Raises
    ------
    FlowDocumentError
        If ``doc`` is not a mapping or ``nodes``/``edges`` are not lists.
    """
    if not isinstance(doc, Mapping):
        raise FlowDocumentError(f"Flow document must be a mapping, got {type(doc).__name__}")

    raw_nodes = doc.get("nodes") or []
    raw_edges = doc.get("edges") or []
    if not isinstance(raw_nodes, list) or not isinstance(raw_edges, list):
        raise FlowDocumentError("'nodes' and 'edges' must be lists")

    nodes: dict[str, Node] = {}
    for entry in raw_nodes:
        node = _node_from_entry(entry)
        if node is None:
            continue
        if node.id in nodes:
            logger.warning("Skipping duplicate node id %r", node.id)
            continue
        nodes[node.id] = node

    edges = [e for e in (_edge_from_entry(entry) for entry in raw_edges) if e is not None]
    graph = Graph(nodes.values(), edges)

    dangling = graph.dangling_edges()
    if dangling:
        logger.debug("%d dangling edge(s) will be ignored", len(dangling))
    return graph


def graph_to_document(graph: Graph) -> dict[str, Any]:
    """Inverse of :func:`graph_from_document` (kinds written as ``type``)."""
    nodes = []
    for node in graph.nodes:
        entry: dict[str, Any] = {"id": node.id, "type": node.kind.value, **node.ui}
        if node.parent_id is not None:
            entry["parentId"] = node.parent_id
        entry["data"] = dict(node.data)
        nodes.append(entry)

    edges = []
    for edge in graph.edges:
        entry = {"source": edge.source, "target": edge.target}
        if edge.id is not None:
            entry["id"] = edge.id
        if edge.source_handle is not None:
            entry["sourceHandle"] = edge.source_handle
        if edge.target_handle is not None:
            entry["targetHandle"] = edge.target_handle
        edges.append(entry)

    return {"nodes": nodes, "edges": edges}


def load_flow(path: str | Path) -> Graph:
    """Load a flow document from disk.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    FlowDocumentError
        If the file does not hold a flow document.
    """
    path = Path(path)
    logger.info("Loading flow from %s", path)
    try:
        doc = fs.load_document(path)
    except (ValueError, yaml.YAMLError) as exc:
        raise FlowDocumentError(f"Could not parse {path}: {exc}") from exc
    return graph_from_document(doc)


def save_flow(graph: Graph, path: str | Path) -> None:
    fs.dump_document(graph_to_document(graph), path)
