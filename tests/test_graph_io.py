"""Tests for the graph model and flow document loading.

Tests for plotflow.graph:
    - Node kind resolution, including legacy category documents
    - UI state separated from parameters
    - Incoming edges sorted, dangling edges excluded
    - Group children, output node selection
    - load_flow / save_flow round trip through JSON and YAML
    - FlowDocumentError for documents that are not flows

Run:
    pytest tests/test_graph_io.py -v
"""

import json

import pytest

from plotflow.graph import (
    Edge,
    FlowDocumentError,
    Graph,
    Node,
    NodeKind,
    graph_from_document,
    load_flow,
    resolve_kind,
    save_flow,
)


@pytest.fixture
def document():
    return {
        "nodes": [
            {"id": "c1", "type": "circle", "position": {"x": 10, "y": 20}, "selected": True,
             "data": {"radius": 5}},
            {"id": "s1", "type": "shape", "data": {"label": "Rectangle", "width": 4}},
            {"id": "out", "type": "output", "data": {}},
            {"id": "ghost", "type": "teleporter", "data": {}},
            "not a node",
        ],
        "edges": [
            {"id": "e1", "source": "c1", "target": "out"},
            {"id": "e2", "source": "s1", "target": "out", "targetHandle": "b"},
            {"id": "e3", "source": "missing", "target": "out"},
        ],
    }


class TestKinds:
    """Kind resolution."""

    def test_direct_type(self):
        assert resolve_kind("halftone") is NodeKind.HALFTONE

    def test_legacy_category_uses_label(self):
        assert resolve_kind("iteration", "Grid") is NodeKind.GRID
        assert resolve_kind("shape", "rectangle") is NodeKind.RECT

    def test_unknown(self):
        assert resolve_kind("teleporter") is None
        assert resolve_kind("shape", "blob") is None

    def test_node_rejects_unknown_kind(self):
        with pytest.raises(ValueError, match="Unknown node kind"):
            Node("n", "teleporter")


class TestGraphFromDocument:
    """Tolerant document loading."""

    def test_skips_unknown_and_malformed_nodes(self, document):
        graph = graph_from_document(document)
        assert graph.node_ids() == {"c1", "s1", "out"}
        assert graph.node("s1").kind is NodeKind.RECT

    def test_ui_state_kept_apart(self, document):
        node = graph_from_document(document).node("c1")
        assert node.ui["position"] == {"x": 10, "y": 20}
        assert node.ui["selected"] is True
        assert "position" not in node.data
        assert node.params.radius == 5.0

    def test_dangling_edges_ignored(self, document):
        graph = graph_from_document(document)
        assert [e.id for e in graph.dangling_edges()] == ["e3"]
        assert {e.source for e in graph.incoming("out")} == {"c1", "s1"}

    def test_not_a_mapping(self):
        with pytest.raises(FlowDocumentError, match="must be a mapping"):
            graph_from_document(["nodes"])

    def test_nodes_not_a_list(self):
        with pytest.raises(FlowDocumentError, match="must be lists"):
            graph_from_document({"nodes": {"a": 1}})

    def test_duplicate_ids_keep_first(self):
        graph = graph_from_document({"nodes": [
            {"id": "a", "type": "line", "data": {"x1": 1}},
            {"id": "a", "type": "circle", "data": {}},
        ]})
        assert graph.node("a").kind is NodeKind.LINE


class TestGraph:
    """Lookups used by the engine."""

    def test_incoming_sorted_by_handle_then_source(self):
        graph = Graph(
            [Node("a", "line"), Node("b", "line"), Node("out", "output")],
            [Edge("b", "out", target_handle="in"), Edge("a", "out", target_handle="in"),
             Edge("b", "out")],
        )
        assert [(e.target_handle, e.source) for e in graph.incoming("out")] == [
            (None, "b"), ("in", "a"), ("in", "b"),
        ]

    def test_children_sorted(self):
        graph = Graph([Node("g", "group"), Node("z", "line", parent_id="g"),
                       Node("m", "line", parent_id="g")])
        assert graph.children("g") == ("m", "z")

    def test_output_node_lowest_id(self):
        graph = Graph([Node("out2", "output"), Node("out1", "output")])
        assert graph.output_node().id == "out1"

    def test_no_output_node(self):
        assert Graph([Node("a", "line")]).output_node() is None

    def test_with_node_replaces(self):
        graph = Graph([Node("a", "line")])
        updated = graph.with_node(graph.node("a").with_data(x1=99))
        assert updated.node("a").params.x1 == 99.0
        assert graph.node("a").params.x1 == 10.0

    def test_without_nodes_drops_edges(self):
        graph = Graph([Node("a", "line"), Node("out", "output")], [Edge("a", "out")])
        assert graph.without_nodes(["a"]).edges == ()

    def test_duplicate_id_rejected(self):
        with pytest.raises(ValueError, match="Duplicate node id"):
            Graph([Node("a", "line"), Node("a", "rect")])


class TestFiles:
    """load_flow / save_flow."""

    def test_json_round_trip(self, document, tmp_path):
        path = tmp_path / "flow.json"
        path.write_text(json.dumps(document))
        graph = load_flow(path)
        save_flow(graph, tmp_path / "copy.json")
        again = load_flow(tmp_path / "copy.json")
        assert again.node_ids() == graph.node_ids()
        assert again.node("c1").ui == graph.node("c1").ui
        assert again.node("s1").kind is NodeKind.RECT
        assert [e.id for e in again.edges] == [e.id for e in graph.edges]

    def test_yaml_round_trip(self, document, tmp_path):
        graph = graph_from_document(document)
        save_flow(graph, tmp_path / "flow.yaml")
        assert load_flow(tmp_path / "flow.yaml").node("c1").params.radius == 5.0

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_flow(tmp_path / "absent.json")

    def test_unparseable_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{nodes: ")
        with pytest.raises(FlowDocumentError, match="Could not parse"):
            load_flow(path)
