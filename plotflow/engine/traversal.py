"""Dependency ordering over a flow graph.

Both node hashing and evaluation walk the graph depth-first from some
roots and need (a) every reachable node after its dependencies and (b)
the dependencies that would close a cycle.  :func:`post_order` does
that walk iteratively, so long chains do not hit the recursion limit.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from plotflow.graph import Graph, NodeKind


@dataclass(frozen=True, slots=True)
class Dependency:
    """One upstream contribution to a node.

    ``label`` is the edge's target handle (``""`` when unnamed) or
    ``"child"`` for a group member.
    """

    source: str
    label: str


def edge_dependencies(graph: Graph, node_id: str) -> list[Dependency]:
    return [Dependency(e.source, e.target_handle or "") for e in graph.incoming(node_id)]


def terminal_children(graph: Graph, group_id: str) -> list[str]:
    """Children of ``group_id`` that feed no sibling inside the group."""
    children = graph.children(group_id)
    members = set(children)
    feeds_sibling = {
        edge.source for child in children for edge in graph.incoming(child) if edge.source in members
    }
    return [c for c in children if c not in feeds_sibling]


def input_dependencies(graph: Graph, node_id: str) -> list[Dependency]:
    """What a node consumes when evaluated, in input order.

    A group consumes its terminal children first, then its external
    sources; every other kind consumes its incoming edges.
    """
    node = graph.node(node_id)
    deps: list[Dependency] = []
    if node is not None and node.kind is NodeKind.GROUP:
        deps.extend(Dependency(c, "child") for c in terminal_children(graph, node_id))
    deps.extend(edge_dependencies(graph, node_id))
    return deps


def post_order(
    roots: Iterable[str], dependencies: Callable[[str], Sequence[Dependency]]
) -> tuple[list[str], frozenset[tuple[str, int]]]:
    """Depth-first walk from ``roots``.

    Parameters
    ----------
    roots : Iterable[str]
        Start nodes, walked in the given order.
    dependencies : callable
        Upstream dependencies of a node id, in a stable order.

    Returns
    -------
    order : list[str]
        Every reachable node, each after all of its non-cyclic
        dependencies.
    back_edges : frozenset[tuple[str, int]]
        ``(node_id, dependency_index)`` pairs whose source was still on
        the walk stack when reached, i.e. the edges closing a cycle.
    """
    order: list[str] = []
    done: set[str] = set()
    on_stack: set[str] = set()
    back: set[tuple[str, int]] = set()

    for root in roots:
        if root in done:
            continue
        stack = [(root, iter(enumerate(dependencies(root))))]
        on_stack.add(root)
        while stack:
            node_id, pending = stack[-1]
            descended = False
            for index, dep in pending:
                if dep.source in on_stack:
                    back.add((node_id, index))
                elif dep.source not in done:
                    on_stack.add(dep.source)
                    stack.append((dep.source, iter(enumerate(dependencies(dep.source)))))
                    descended = True
                    break
            if not descended:
                stack.pop()
                on_stack.discard(node_id)
                done.add(node_id)
                order.append(node_id)
    return order, frozenset(back)
