"""Shared fixtures: graph builders and synthetic images."""

import base64
import io

import numpy as np
import pytest
from PIL import Image

from plotflow.graph import Edge, Graph, Node
from plotflow.nodes import NodeContext


class FlowBuilder:
    """Small fluent helper for building test graphs."""

    def __init__(self):
        self.nodes = []
        self.edges = []

    def add(self, node_id, kind, parent=None, ui=None, **data):
        self.nodes.append(Node(node_id, kind, data, parent_id=parent, ui=ui or {}))
        return self

    def connect(self, source, target, handle=None):
        self.edges.append(Edge(source, target, target_handle=handle, id=f"{source}->{target}"))
        return self

    def graph(self):
        return Graph(self.nodes, self.edges)


@pytest.fixture
def flow():
    """Fresh :class:`FlowBuilder`."""
    return FlowBuilder()


@pytest.fixture
def ctx():
    """Default node context (shipped limits, no raster)."""
    return NodeContext(node_id="test")


def encode_png(pixels):
    """``data:image/png;base64,...`` URL for a uint8 grey or RGBA array."""
    buf = io.BytesIO()
    Image.fromarray(np.asarray(pixels, dtype=np.uint8)).save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


@pytest.fixture
def png_data_url():
    """Factory turning a pixel array into a PNG data URL."""
    return encode_png


@pytest.fixture
def half_black_url():
    """8x8 image: left half black, right half white."""
    pixels = np.full((8, 8), 255, dtype=np.uint8)
    pixels[:, :4] = 0
    return encode_png(pixels)
