"""Decoded images for the raster-sampling node kinds.

Images arrive as ``data:`` URLs on ``image`` nodes.  They are decoded
once per run, before any node executes, into a luminance array in
[0, 1] (0 = black).  Transparent pixels are composited over white so
that an empty background reads as paper.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from urllib.parse import unquote_to_bytes

import numpy as np
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)


class RasterError(ValueError):
    """Raised when image data cannot be decoded."""


@dataclass(frozen=True, eq=False)
class Raster:
    """Luminance image, shape (H, W), dtype float64, row 0 at the top."""

    luminance: np.ndarray

    def __post_init__(self) -> None:
        if self.luminance.ndim != 2 or 0 in self.luminance.shape:
            raise ValueError(f"luminance must be a non-empty 2D array, got shape {self.luminance.shape}")

    @property
    def width(self) -> int:
        return int(self.luminance.shape[1])

    @property
    def height(self) -> int:
        return int(self.luminance.shape[0])

    def sample_many(self, u: np.ndarray, v: np.ndarray) -> np.ndarray:
        """Bilinear brightness at normalized coordinates.

        Parameters
        ----------
        u, v : np.ndarray
            Horizontal (0 = left edge) and vertical (0 = top edge)
            positions in [0, 1]; values outside are clamped.

        Returns
        -------
        np.ndarray
            Brightness in [0, 1], same shape as ``u``.
        """
        img = self.luminance
        h, w = img.shape
        x = np.clip(np.asarray(u, dtype=np.float64), 0.0, 1.0) * (w - 1)
        y = np.clip(np.asarray(v, dtype=np.float64), 0.0, 1.0) * (h - 1)

        x0 = np.floor(x).astype(np.intp)
        y0 = np.floor(y).astype(np.intp)
        x1 = np.minimum(x0 + 1, w - 1)
        y1 = np.minimum(y0 + 1, h - 1)
        fx = x - x0
        fy = y - y0

        top = img[y0, x0] * (1 - fx) + img[y0, x1] * fx
        bottom = img[y1, x0] * (1 - fx) + img[y1, x1] * fx
        return top * (1 - fy) + bottom * fy

    def sample(self, u: float, v: float) -> float:
        return float(self.sample_many(np.array([u]), np.array([v]))[0])

    @classmethod
    def from_image(cls, image: Image.Image) -> Raster:
        """Composite over white, convert to 8-bit grey, scale to [0, 1]."""
        rgba = image.convert("RGBA")
        background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        grey = Image.alpha_composite(background, rgba).convert("L")
        return cls(np.asarray(grey, dtype=np.float64) / 255.0)


def decode_data_url(data_url: str) -> Raster:
    """Decode a ``data:[<mime>][;base64],<payload>`` URL.

    Raises
    ------
    RasterError
        If the URL is malformed or the payload is not a readable image.
    """
    header, sep, payload = data_url.partition(",")
    if not sep or not header.startswith("data:"):
        raise RasterError("Image data must be a data: URL")

    try:
        if header.endswith(";base64"):
            raw = base64.b64decode(payload, validate=False)
        else:
            raw = unquote_to_bytes(payload)
    except (binascii.Error, ValueError) as exc:
        raise RasterError(f"Image payload is not valid base64: {exc}") from exc

    try:
        with Image.open(io.BytesIO(raw)) as image:
            image.load()
            raster = Raster.from_image(image)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise RasterError(f"Cannot decode image: {exc}") from exc

    logger.debug("Decoded %dx%d image (%d bytes)", raster.width, raster.height, len(raw))
    return raster
