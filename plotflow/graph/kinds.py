"""The closed set of node kinds and their families."""

from __future__ import annotations

from enum import Enum


class NodeKind(str, Enum):
    """Every node type the engine knows how to evaluate."""

    # shape generators
    LINE = "line"
    RECT = "rect"
    CIRCLE = "circle"
    ELLIPSE = "ellipse"
    ARC = "arc"
    POLYGON = "polygon"
    # text and script
    TEXT = "text"
    BATAK = "batak"
    # procedural generators
    ATTRACTOR = "attractor"
    # raster
    IMAGE = "image"
    HALFTONE = "halftone"
    ASCII = "ascii"
    MASK = "mask"
    # transformers
    REPEAT = "repeat"
    GRID = "grid"
    RADIAL = "radial"
    TRANSLATE = "translate"
    ROTATE = "rotate"
    SCALE = "scale"
    PATH = "path"
    ALGORITHMIC = "algorithmic"
    LSYSTEM = "lsystem"
    CODE = "code"
    # structural
    GROUP = "group"
    OUTPUT = "output"

    @classmethod
    def parse(cls, value: object) -> NodeKind | None:
        """Return the kind named by ``value``, or ``None`` if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


RASTER_KINDS = frozenset({NodeKind.HALFTONE, NodeKind.ASCII, NodeKind.MASK})
"""Kinds that sample an upstream image."""

# Editor documents from before kinds were explicit stored a category in
# ``type`` and the concrete shape/operation in ``data.label``.
LEGACY_CATEGORIES: dict[str, dict[str, NodeKind]] = {
    "shape": {
        "line": NodeKind.LINE,
        "rect": NodeKind.RECT,
        "rectangle": NodeKind.RECT,
        "circle": NodeKind.CIRCLE,
        "ellipse": NodeKind.ELLIPSE,
        "arc": NodeKind.ARC,
        "polygon": NodeKind.POLYGON,
    },
    "iteration": {
        "repeat": NodeKind.REPEAT,
        "grid": NodeKind.GRID,
        "radial": NodeKind.RADIAL,
    },
    "transform": {
        "translate": NodeKind.TRANSLATE,
        "rotate": NodeKind.ROTATE,
        "scale": NodeKind.SCALE,
    },
}


def resolve_kind(type_name: object, label: object = None) -> NodeKind | None:
    """Resolve a document's ``type`` (and legacy ``label``) to a kind."""
    category = LEGACY_CATEGORIES.get(str(type_name).strip().lower())
    if category is not None:
        return category.get(str(label or "").strip().lower())
    return NodeKind.parse(type_name)
