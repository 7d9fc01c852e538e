"""Toba Batak script rendering from Latin input.

Two collaborators make up a :class:`BatakScript`: a transliterator
(Latin text to Batak code points) and a glyph table.  The engine ships
a default of each; both can be replaced, and the glyph table path is
part of the engine configuration.

Layout rules: base glyphs advance the cursor by ``advance * size`` plus
the node's kerning; marks (vowel signs, pangolat) are drawn relative to
the previous base glyph and do not advance; a space advances half a
unit; ``\\n`` starts a new line.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Callable, Literal, Mapping

from plotflow.geometry import ColoredPath, Point, make_paths, simplify_points
from plotflow.graph.params import BatakParams
from plotflow.nodes.context import NodeContext
from plotflow.utils.fs import load_yaml

logger = logging.getLogger(__name__)

GLYPH_TABLE_PATH = Path(__file__).parent / "data" / "batak_glyphs.yaml"

SPACE_ADVANCE = 0.5
LINE_HEIGHT = 1.5
SIMPLIFY_FACTOR = 0.01


# ---------------------------------------------------------------------------
# Glyphs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Glyph:
    """Strokes of one code point in glyph units."""

    paths: tuple[tuple[Point, ...], ...]
    advance: float
    is_mark: bool = False
    anchor_mode: Literal["base", "center", "right"] | None = None
    anchor_dx: float = 0.0

    def __post_init__(self) -> None:
        if self.anchor_mode not in (None, "base", "center", "right"):
            raise ValueError(f"anchor mode must be base, center or right, got {self.anchor_mode!r}")


def _parse_glyph(char: str, entry: Mapping) -> Glyph:
    anchor = entry.get("anchor") or {}
    return Glyph(
        paths=tuple(
            tuple((float(px), float(py)) for px, py in path) for path in entry.get("paths") or ()
        ),
        advance=float(entry.get("advance", 0.0)),
        is_mark=bool(entry.get("is_mark", False)),
        anchor_mode=anchor.get("mode") if anchor else None,
        anchor_dx=float(anchor.get("dx", 0.0) or 0.0) if anchor else 0.0,
    )


@lru_cache(maxsize=8)
def load_glyph_table(path: str | Path = GLYPH_TABLE_PATH) -> dict[str, Glyph]:
    """Load a glyph table YAML (``{glyphs: {char: {...}}}``).

    Raises
    ------
    ValueError
        If the file does not have the expected shape.
    """
    raw = load_yaml(path)
    glyphs = raw.get("glyphs") if isinstance(raw, dict) else None
    if not isinstance(glyphs, dict):
        raise ValueError(f"Glyph table {path} must contain a 'glyphs' mapping")

    table = {}
    for char, entry in glyphs.items():
        if not isinstance(entry, dict):
            raise ValueError(f"Glyph {char!r} in {path} must be a mapping")
        table[str(char)] = _parse_glyph(str(char), entry)
    logger.debug("Loaded %d Batak glyphs from %s", len(table), path)
    return table


# ---------------------------------------------------------------------------
# Transliteration
# ---------------------------------------------------------------------------

CONSONANTS = {
    "h": "ᯂ", "k": "ᯃ", "b": "ᯄ", "p": "ᯅ", "n": "ᯆ",
    "w": "ᯇ", "g": "ᯈ", "j": "ᯉ", "d": "ᯊ", "r": "ᯋ",
    "m": "ᯌ", "t": "ᯍ", "s": "ᯎ", "l": "ᯏ", "y": "ᯐ",
}
VOWEL_MARKS = {"i": "ᯪ", "u": "ᯫ", "e": "ᯧ", "o": "ᯬ", "a": ""}
INDEPENDENT_VOWELS = {
    "a": "ᯀ",
    "i": "ᯁᯪ",
    "u": "ᯁᯫ",
    "e": "ᯁᯧ",
    "o": "ᯁᯬ",
}
PANGOLAT = "᯲"
AMBOROLONG = "ᯑ"
_WORD_END = ("", " ", "\n")


def transliterate_toba(text: str) -> str:
    """Transliterate Latin text to Toba Batak.

    Consonants carry an inherent ``a``; a following vowel becomes a
    mark; ``ng`` is the nga letter; a word-final closed syllable CVC is
    written C C V + pangolat.  Anything else passes through.
    """
    src = text.lower()
    out: list[str] = []
    i = 0

    def at(k: int) -> str:
        return src[k] if k < len(src) else ""

    while i < len(src):
        char, nxt, after = at(i), at(i + 1), at(i + 2)

        if char == "n" and nxt == "g":
            out.append(AMBOROLONG)
            i += 2
        elif char in CONSONANTS:
            base = CONSONANTS[char]
            if nxt in VOWEL_MARKS:
                mark = VOWEL_MARKS[nxt]
                if after in CONSONANTS and at(i + 3) in _WORD_END:
                    out.append(base + CONSONANTS[after] + mark + PANGOLAT)
                    i += 3
                else:
                    out.append(base + mark)
                    i += 2
            else:
                out.append(base)
                i += 1
        elif char in INDEPENDENT_VOWELS:
            out.append(INDEPENDENT_VOWELS[char])
            i += 1
        else:
            out.append(char)
            i += 1
    return "".join(out)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BatakScript:
    """Transliterator plus glyph table."""

    glyphs: Mapping[str, Glyph]
    transliterate: Callable[[str], str] = transliterate_toba


def default_script(glyph_table: str | Path | None = None) -> BatakScript:
    return BatakScript(load_glyph_table(glyph_table or GLYPH_TABLE_PATH))


def render_batak(
    text: str,
    x: float,
    y: float,
    size: float,
    kerning: float = 0.0,
    script: BatakScript | None = None,
) -> list[list[Point]]:
    """Render Latin ``text`` as Batak strokes starting at ``(x, y)``."""
    script = script or default_script()
    batak = script.transliterate(text)
    min_distance = SIMPLIFY_FACTOR * size

    polylines: list[list[Point]] = []
    cursor_x = last_base_x = x
    cursor_y = y
    for char in batak:
        if char == "\n":
            cursor_x = last_base_x = x
            cursor_y += LINE_HEIGHT * size
            continue

        glyph = script.glyphs.get(char)
        if glyph is None:
            if char == " ":
                cursor_x += SPACE_ADVANCE * size
            continue

        render_x = cursor_x
        if glyph.is_mark and glyph.anchor_mode is not None:
            render_x = last_base_x
            if glyph.anchor_mode == "center":
                render_x -= glyph.anchor_dx * size

        for path in glyph.paths:
            points = [(render_x + px * size, cursor_y + py * size) for px, py in path]
            points = simplify_points(points, min_distance)
            if len(points) > 1:
                polylines.append(points)

        if not glyph.is_mark:
            last_base_x = cursor_x
            cursor_x += glyph.advance * size + kerning
    return polylines


def generate_batak(params: BatakParams, inputs: list[ColoredPath], ctx: NodeContext) -> list[ColoredPath]:
    polylines = render_batak(params.text, params.x, params.y, params.size, params.kerning, ctx.batak)
    return make_paths(polylines, params.color)
