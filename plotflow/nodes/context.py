"""Per-node evaluation context handed to algorithm functions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from plotflow.configs.loader import Limits

if TYPE_CHECKING:
    from plotflow.nodes.batak import BatakScript
    from plotflow.nodes.raster import Raster


@dataclass(frozen=True)
class NodeContext:
    """What an algorithm may know besides its parameters and inputs.

    Parameters
    ----------
    node_id : str
        For log messages.
    limits : Limits
        Safety caps of the active configuration.
    raster : Raster | None
        Decoded upstream image for raster-sampling kinds.
    batak : BatakScript | None
        Transliterator and glyph table for the ``batak`` kind.
    """

    node_id: str = "?"
    limits: Limits = field(default_factory=Limits)
    raster: Raster | None = None
    batak: BatakScript | None = None
