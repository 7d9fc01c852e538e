"""Single-stroke text rendering.

Characters come from a 5x7 grid font (``data/stroke_font.yaml``).  A
character cell is ``size`` wide and ``size * 7/5`` tall; the cursor
advances ``size * spacing`` per character and ``\\n`` starts a new line
``1.5`` cell heights lower.  Characters missing from the font fall back
to their uppercase form, then advance the cursor without drawing.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from plotflow.geometry import ColoredPath, Point, make_paths, simplify_points
from plotflow.graph.params import TextParams
from plotflow.nodes.context import NodeContext
from plotflow.utils.fs import load_yaml

FONT_PATH = Path(__file__).parent / "data" / "stroke_font.yaml"

CHAR_WIDTH = 5.0
CHAR_HEIGHT = 7.0
LINE_HEIGHT = 1.5
SIMPLIFY_FACTOR = 0.01

Strokes = tuple[tuple[Point, ...], ...]


@lru_cache(maxsize=None)
def load_font(path: Path = FONT_PATH) -> dict[str, Strokes]:
    """Load a grid font and normalize it to the unit cell.

    Raises
    ------
    ValueError
        If the file is not a mapping of characters to stroke lists.
    """
    raw = load_yaml(path)
    if not isinstance(raw, dict):
        raise ValueError(f"Stroke font {path} must map characters to strokes")

    font: dict[str, Strokes] = {}
    for char, strokes in raw.items():
        if not isinstance(char, str) or len(char) != 1:
            raise ValueError(f"Stroke font key must be one character, got {char!r}")
        font[char] = tuple(
            tuple((float(px) / CHAR_WIDTH, float(py) / CHAR_HEIGHT) for px, py in stroke)
            for stroke in strokes or ()
        )
    return font


def glyph_for(char: str, font: dict[str, Strokes] | None = None) -> Strokes | None:
    font = load_font() if font is None else font
    strokes = font.get(char)
    if strokes is None:
        strokes = font.get(char.upper())
    return strokes


def render_text(
    text: str,
    x: float,
    y: float,
    size: float,
    spacing: float = 1.2,
    line_height: float = LINE_HEIGHT,
) -> list[list[Point]]:
    """Lay out ``text`` with its first cell's top-left corner at ``(x, y)``.

    Glyphs are flipped vertically inside their cell so text reads
    correctly once the plot preview flips the Y axis.
    """
    font = load_font()
    char_width = size * spacing
    char_height = size * (CHAR_HEIGHT / CHAR_WIDTH)
    min_distance = SIMPLIFY_FACTOR * size

    polylines: list[list[Point]] = []
    cursor_x, cursor_y = x, y
    for char in text:
        if char == "\n":
            cursor_x = x
            cursor_y += char_height * line_height
            continue
        for stroke in glyph_for(char, font) or ():
            points = [(cursor_x + px * size, cursor_y + (1 - py) * char_height) for px, py in stroke]
            points = simplify_points(points, min_distance)
            if len(points) > 1:
                polylines.append(points)
        cursor_x += char_width
    return polylines


def generate_text(params: TextParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    polylines = render_text(params.text, params.x, params.y, params.size, params.spacing)
    return make_paths(polylines, params.color)
