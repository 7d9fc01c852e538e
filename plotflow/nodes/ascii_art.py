"""ASCII art: the image as a grid of stroke-font characters.

The frame is cut into ``cellWidth x cellHeight`` cells.  The darkness at
each cell centre picks a character from ``charset`` (ordered light to
dark), which is drawn centred in its cell at ``fontSize``.  Whitespace
characters draw nothing.
"""

from __future__ import annotations

import numpy as np

from plotflow.geometry import ColoredPath, Point, make_paths
from plotflow.graph.params import AsciiParams
from plotflow.nodes.context import NodeContext
from plotflow.nodes.halftone import darkness_at, frame_uv
from plotflow.nodes.raster import Raster
from plotflow.nodes.text import CHAR_HEIGHT, CHAR_WIDTH, render_text


def char_for(darkness: float, charset: str) -> str:
    index = int(round(darkness * (len(charset) - 1)))
    return charset[min(max(index, 0), len(charset) - 1)]


def ascii_lines(params: AsciiParams, raster: Raster) -> list[list[Point]]:
    width, height = params.output_width, params.output_height
    cols = int(width // params.cell_width)
    rows = int(height // params.cell_height)
    if cols == 0 or rows == 0:
        return []

    # cell centres in frame coordinates, row 0 at the bottom
    cx = (np.arange(cols) + 0.5) * params.cell_width
    cy = (np.arange(rows) + 0.5) * params.cell_height
    gx, gy = np.meshgrid(cx, cy)
    u, v = frame_uv(gx, gy, width, height, params.flip_x, params.flip_y)
    dark = darkness_at(raster, u, v, params.invert)

    glyph_w = params.font_size
    glyph_h = params.font_size * (CHAR_HEIGHT / CHAR_WIDTH)
    polylines: list[list[Point]] = []
    for row in range(rows):
        for col in range(cols):
            char = char_for(float(dark[row, col]), params.charset)
            if char.isspace():
                continue
            x = cx[col] - glyph_w / 2
            y = cy[row] - glyph_h / 2
            polylines.extend(render_text(char, float(x), float(y), glyph_w))
    return polylines


def generate_ascii(params: AsciiParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    if ctx.raster is None:
        return []
    return make_paths(ascii_lines(params, ctx.raster), params.color)
