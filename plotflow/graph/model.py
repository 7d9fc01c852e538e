"""Nodes, edges and the immutable graph handed to the evaluator.

A :class:`Graph` is a snapshot: edits build a new graph (``with_node``,
``without_nodes``) rather than mutating the one an evaluation may be
reading.  Lookups that feed geometry ordering (``incoming``,
``children``) use explicit sort keys so results never depend on the
order nodes or edges were stored in.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from functools import cached_property
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from plotflow.graph.kinds import NodeKind
from plotflow.graph.params import NodeParams, parse_params

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Node / Edge
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class Node:
    """One vertex of the flow graph.

    Parameters
    ----------
    id : str
        Unique within a graph.
    kind : NodeKind
        Selects the parameter model and the algorithm.
    data : Mapping[str, Any]
        Raw parameter bag as persisted (camelCase keys).
    parent_id : str | None
        Enclosing group node, if any.
    ui : Mapping[str, Any]
        Canvas-only state (position, selection, drag/resize flags).
        Never affects output or cache keys.
    """

    id: str
    kind: NodeKind
    data: Mapping[str, Any] = field(default_factory=dict)
    parent_id: str | None = None
    ui: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise ValueError(f"Node id must be a non-empty string, got {self.id!r}")
        kind = NodeKind.parse(self.kind)
        if kind is None:
            raise ValueError(f"Unknown node kind {self.kind!r}")
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "data", MappingProxyType(dict(self.data)))
        object.__setattr__(self, "ui", MappingProxyType(dict(self.ui)))

    @cached_property
    def params(self) -> NodeParams:
        """Validated parameters (defaults substituted for bad fields)."""
        return parse_params(self.kind, self.data)

    def with_data(self, **changes: Any) -> Node:
        """New version of this node with some parameters changed."""
        return replace(self, data={**self.data, **changes})

    def with_ui(self, **changes: Any) -> Node:
        return replace(self, ui={**self.ui, **changes})

    def __repr__(self) -> str:
        return f"Node(id={self.id!r}, kind={self.kind.value!r})"


@dataclass(frozen=True, slots=True)
class Edge:
    """Directed connection ``source[.source_handle] -> target[.target_handle]``."""

    source: str
    target: str
    source_handle: str | None = None
    target_handle: str | None = None
    id: str | None = None

    @property
    def sort_key(self) -> tuple[str, str, str]:
        return (self.target_handle or "", self.source, self.source_handle or "")


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


class Graph:
    """Immutable set of nodes and edges with the lookups the engine needs."""

    def __init__(self, nodes: Iterable[Node] = (), edges: Iterable[Edge] = ()) -> None:
        self._nodes: dict[str, Node] = {}
        for node in nodes:
            if node.id in self._nodes:
                raise ValueError(f"Duplicate node id {node.id!r}")
            self._nodes[node.id] = node
        self._edges: tuple[Edge, ...] = tuple(edges)

        incoming: dict[str, list[Edge]] = defaultdict(list)
        for edge in self._edges:
            if edge.source in self._nodes and edge.target in self._nodes:
                incoming[edge.target].append(edge)
        self._incoming = {k: tuple(sorted(v, key=lambda e: e.sort_key)) for k, v in incoming.items()}

        children: dict[str, list[str]] = defaultdict(list)
        for node in self._nodes.values():
            if node.parent_id is not None:
                children[node.parent_id].append(node.id)
        self._children = {k: tuple(sorted(v)) for k, v in children.items()}

    # -- access ---------------------------------------------------------------

    @property
    def nodes(self) -> tuple[Node, ...]:
        return tuple(self._nodes.values())

    @property
    def edges(self) -> tuple[Edge, ...]:
        return self._edges

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def node(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def node_ids(self) -> frozenset[str]:
        return frozenset(self._nodes)

    def incoming(self, node_id: str) -> tuple[Edge, ...]:
        """Edges into ``node_id`` whose source exists, in a stable order.

        Ordered by ``(target_handle, source, source_handle)``; dangling
        edges are left out.
        """
        return self._incoming.get(node_id, ())

    def dangling_edges(self) -> tuple[Edge, ...]:
        return tuple(
            e for e in self._edges if e.source not in self._nodes or e.target not in self._nodes
        )

    def children(self, group_id: str) -> tuple[str, ...]:
        """Ids of nodes whose parent is ``group_id``, sorted."""
        return self._children.get(group_id, ())

    def output_node(self) -> Node | None:
        """The sink node; the lowest id wins if a document has several."""
        sinks = sorted(n.id for n in self._nodes.values() if n.kind is NodeKind.OUTPUT)
        if not sinks:
            return None
        if len(sinks) > 1:
            logger.warning("Graph has %d output nodes, using %r", len(sinks), sinks[0])
        return self._nodes[sinks[0]]

    # -- editing ----------------------------------------------------------------

    def with_node(self, node: Node) -> Graph:
        """Copy with ``node`` added, or replacing the node with the same id."""
        nodes = dict(self._nodes)
        nodes[node.id] = node
        return Graph(nodes.values(), self._edges)

    def without_nodes(self, node_ids: Iterable[str]) -> Graph:
        """Copy with nodes and their incident edges removed."""
        drop = set(node_ids)
        return Graph(
            (n for n in self._nodes.values() if n.id not in drop),
            (e for e in self._edges if e.source not in drop and e.target not in drop),
        )

    def with_edges(self, edges: Iterable[Edge]) -> Graph:
        """Copy with the edge list replaced."""
        return Graph(self._nodes.values(), edges)

    def __repr__(self) -> str:
        return f"Graph(nodes={len(self._nodes)}, edges={len(self._edges)})"
