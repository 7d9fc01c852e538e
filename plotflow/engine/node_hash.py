"""Content-addressed node hashes.

A node's *data hash* covers its kind and validated parameters and
nothing else, so moving or selecting a node in the editor never
invalidates it.  Its *combined hash* also folds in the combined hashes
of everything upstream; two nodes with equal combined hashes produce
equal output.

Usage::

    from plotflow.engine.node_hash import compute_hashes
    hashes = compute_hashes(graph)      # {node_id: hex digest}
"""

from __future__ import annotations

import logging

from plotflow.engine.traversal import Dependency, edge_dependencies, post_order
from plotflow.graph import PARAM_MODELS, Graph, Node, NodeKind
from plotflow.utils.hashing import fingerprint, hash_dict, sha256_string

logger = logging.getLogger(__name__)

CYCLE_MARKER = "cycle"

# Parameters too large to hash in full; a length+prefix fingerprint
# stands in for them.
BULKY_FIELDS: dict[NodeKind, frozenset[str]] = {kind: frozenset() for kind in NodeKind}
BULKY_FIELDS[NodeKind.IMAGE] = frozenset({"image_data"})

_missing = set(NodeKind) - set(BULKY_FIELDS)
if _missing:
    raise RuntimeError(f"No hashing rule for node kinds: {sorted(k.value for k in _missing)}")
for _kind, _fields in BULKY_FIELDS.items():
    _unknown = _fields - set(PARAM_MODELS[_kind].model_fields)
    if _unknown:
        raise RuntimeError(f"{_kind.value}: bulky fields {sorted(_unknown)} are not parameters")


def data_hash(node: Node, prefix_length: int = 100) -> str:
    """Hash of ``{kind, params}`` with bulky payloads fingerprinted.

    ``params`` is the validated model dump, so defaults are hashed
    explicitly and unknown keys in the raw document are ignored.
    """
    params = node.params.model_dump(mode="json")
    for name in BULKY_FIELDS[node.kind]:
        value = params.get(name)
        if isinstance(value, str):
            params[name] = fingerprint(value, prefix_length)
    return hash_dict({"kind": node.kind.value, "params": params})


def hash_dependencies(graph: Graph, node_id: str) -> list[Dependency]:
    """Incoming edges plus, for a group, every child."""
    deps = edge_dependencies(graph, node_id)
    node = graph.node(node_id)
    if node is not None and node.kind is NodeKind.GROUP:
        deps.extend(Dependency(c, "child") for c in graph.children(node_id))
    return deps


def combine(own: str, upstream_entries: list[str]) -> str:
    """Combined hash from a data hash and ``label:source:hash`` entries.

    Entries are sorted, so edge enumeration order never matters.
    """
    return sha256_string(own + sha256_string("|".join(sorted(upstream_entries))))


def compute_hashes(graph: Graph, prefix_length: int = 100) -> dict[str, str]:
    """Combined hash of every node in one pass.

    A dependency that closes a cycle contributes :data:`CYCLE_MARKER`
    instead of its hash.
    """
    deps = {node_id: hash_dependencies(graph, node_id) for node_id in graph.node_ids()}
    order, back_edges = post_order(sorted(deps), deps.__getitem__)

    hashes: dict[str, str] = {}
    for node_id in order:
        entries = []
        for index, dep in enumerate(deps[node_id]):
            upstream = CYCLE_MARKER if (node_id, index) in back_edges else hashes[dep.source]
            entries.append(f"{dep.label}:{dep.source}:{upstream}")
        hashes[node_id] = combine(data_hash(graph.node(node_id), prefix_length), entries)

    if back_edges:
        logger.debug("Hashed %d nodes with %d cycle-closing edges", len(hashes), len(back_edges))
    return hashes
