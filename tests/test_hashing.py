"""Tests for node hashing and dependency ordering.

Tests for plotflow.engine.node_hash and plotflow.engine.traversal:
    - Data hash ignores UI state and unknown keys, includes defaults
    - Image payloads hash by length and prefix
    - Combined hash independent of edge order, sensitive to handles
    - Upstream edits propagate downstream only
    - Group hash covers every child
    - Cycles hash deterministically
    - post_order ordering and back edges

Run:
    pytest tests/test_hashing.py -v
"""

import pytest

from plotflow.engine.node_hash import CYCLE_MARKER, combine, compute_hashes, data_hash
from plotflow.engine.traversal import Dependency, input_dependencies, post_order, terminal_children
from plotflow.graph import Edge, Graph, Node


class TestDataHash:
    """data_hash."""

    def test_ui_state_ignored(self):
        a = Node("c", "circle", {"radius": 5}, ui={"position": {"x": 0, "y": 0}})
        b = Node("c", "circle", {"radius": 5}, ui={"position": {"x": 90, "y": 12}, "selected": True})
        assert data_hash(a) == data_hash(b)

    def test_defaults_and_unknown_keys(self):
        explicit = Node("c", "circle", {"radius": 20.0, "segments": 36})
        implicit = Node("c", "circle", {"label": "Circle"})
        assert data_hash(explicit) == data_hash(implicit)

    def test_parameter_change(self):
        assert data_hash(Node("c", "circle", {"radius": 5})) != data_hash(Node("c", "circle", {"radius": 6}))

    def test_kind_matters(self):
        assert data_hash(Node("n", "translate")) != data_hash(Node("n", "rotate"))

    def test_image_payload_fingerprint(self):
        head = "data:image/png;base64," + "A" * 200
        same_prefix = Node("i", "image", {"imageData": head + "B"})
        other_tail = Node("i", "image", {"imageData": head + "C"})
        longer = Node("i", "image", {"imageData": head + "BB"})
        assert data_hash(same_prefix) == data_hash(other_tail)
        assert data_hash(same_prefix) != data_hash(longer)

    def test_prefix_length(self):
        a = Node("i", "image", {"imageData": "data:,xxxxA"})
        b = Node("i", "image", {"imageData": "data:,xxxxB"})
        assert data_hash(a, prefix_length=4) == data_hash(b, prefix_length=4)
        assert data_hash(a) != data_hash(b)


class TestCombinedHash:
    """compute_hashes."""

    def test_combine_sorts_entries(self):
        assert combine("x", [":a:1", ":b:2"]) == combine("x", [":b:2", ":a:1"])

    def test_edge_order_irrelevant(self, flow):
        flow.add("a", "circle").add("b", "rect").add("out", "output")
        flow.connect("a", "out").connect("b", "out")
        graph = flow.graph()
        reversed_graph = graph.with_edges(reversed(graph.edges))
        assert compute_hashes(graph) == compute_hashes(reversed_graph)

    def test_handle_matters(self):
        nodes = [Node("a", "circle"), Node("t", "translate")]
        left = Graph(nodes, [Edge("a", "t", target_handle="left")])
        right = Graph(nodes, [Edge("a", "t", target_handle="right")])
        assert compute_hashes(left)["t"] != compute_hashes(right)["t"]

    def test_edit_propagates_downstream_only(self, flow):
        flow.add("a", "circle").add("b", "rect").add("t", "translate").add("out", "output")
        flow.connect("a", "t").connect("t", "out").connect("b", "out")
        graph = flow.graph()
        before = compute_hashes(graph)
        after = compute_hashes(graph.with_node(graph.node("a").with_data(radius=3)))
        assert {n for n in before if before[n] != after[n]} == {"a", "t", "out"}

    def test_group_covers_every_child(self, flow):
        flow.add("g", "group").add("c1", "circle", parent="g").add("t", "translate", parent="g")
        flow.connect("c1", "t")
        graph = flow.graph()
        before = compute_hashes(graph)["g"]
        after = compute_hashes(graph.with_node(graph.node("c1").with_data(radius=1)))["g"]
        assert before != after

    def test_cycle_is_deterministic(self, flow):
        flow.add("t1", "translate").add("t2", "translate").add("out", "output")
        flow.connect("t1", "t2").connect("t2", "t1").connect("t2", "out")
        graph = flow.graph()
        hashes = compute_hashes(graph)
        assert set(hashes) == {"t1", "t2", "out"}
        assert hashes == compute_hashes(graph.with_edges(reversed(graph.edges)))

    def test_dangling_edge_ignored(self, flow):
        flow.add("a", "circle").add("out", "output").connect("a", "out")
        graph = flow.graph()
        with_ghost = graph.with_edges([*graph.edges, Edge("ghost", "out")])
        assert compute_hashes(graph) == compute_hashes(with_ghost)

    def test_cycle_marker_constant(self):
        assert CYCLE_MARKER == "cycle"


class TestTraversal:
    """post_order / terminal_children / input_dependencies."""

    @staticmethod
    def _deps(table):
        return lambda node_id: [Dependency(src, "") for src in table.get(node_id, [])]

    def test_chain(self):
        order, back = post_order(["c"], self._deps({"c": ["b"], "b": ["a"]}))
        assert order == ["a", "b", "c"]
        assert back == frozenset()

    def test_diamond_visits_once(self):
        order, _ = post_order(["d"], self._deps({"d": ["b", "c"], "b": ["a"], "c": ["a"]}))
        assert order == ["a", "b", "c", "d"]

    def test_back_edge(self):
        order, back = post_order(["a"], self._deps({"a": ["b"], "b": ["a"]}))
        assert order == ["b", "a"]
        assert back == frozenset({("b", 0)})

    def test_deep_chain_is_iterative(self):
        table = {str(i): [str(i - 1)] for i in range(1, 20_000)}
        order, _ = post_order(["19999"], self._deps(table))
        assert len(order) == 20_000
        assert order[0] == "0"

    def test_terminal_children(self, flow):
        flow.add("g", "group")
        flow.add("c1", "circle", parent="g").add("c2", "rect", parent="g").add("t", "translate", parent="g")
        flow.connect("c1", "t")
        graph = flow.graph()
        assert terminal_children(graph, "g") == ["c2", "t"]

    def test_group_inputs_children_first(self, flow):
        flow.add("g", "group").add("c", "circle", parent="g").add("ext", "rect")
        flow.connect("ext", "g")
        deps = input_dependencies(flow.graph(), "g")
        assert deps == [Dependency("c", "child"), Dependency("ext", "")]


@pytest.mark.parametrize("kind", ["line", "code", "halftone", "lsystem", "group", "output"])
def test_every_kind_hashes(kind):
    assert len(data_hash(Node("n", kind))) == 64
