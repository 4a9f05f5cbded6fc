"""
raster.py

Raster value types and the collaborators that sit at the pipeline boundary.

The analysis core never parses file formats and never owns a drawing surface.
Instead it works on explicit RGBA8 arrays and asks two small collaborators for
help:

  1) an ImageDecoder, which turns bytes / paths / PIL images into a RasterImage
  2) a RasterSurface, which hands out fresh output buffers

Pillow backs the default decoder; plain numpy allocation backs the default
surface. Both can be swapped in tests.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from io import BytesIO
from typing import Protocol, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

ImageSource = Union[bytes, str, os.PathLike, Image.Image]

# integer / float modes wider than 8 bits (16-bit grayscale PNG, TIFF)
WIDE_MODES = ("I", "F")


# ----------------------------
# Errors
# ----------------------------

class AnalysisError(Exception):
    """Base class for failures surfaced by the analysis pipeline."""


class UnsupportedInput(AnalysisError):
    """The image could not be decoded or drawn onto the analysis canvas."""


class RenderTargetUnavailable(AnalysisError):
    """An output raster surface could not be allocated."""


class AnalysisInProgress(AnalysisError):
    """A previous analysis is still writing to the session's buffers."""


# ----------------------------
# Types / Contracts
# ----------------------------

@dataclass(frozen=True)
class RasterImage:
    """RGBA8 pixels, shape (H, W, 4)."""

    pixels: np.ndarray

    def __post_init__(self) -> None:
        check_rgba(self.pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


def check_rgba(pixels: np.ndarray) -> None:
    if not isinstance(pixels, np.ndarray) or pixels.ndim != 3 or pixels.shape[-1] != 4:
        raise ValueError("Expected RGBA array of shape (H, W, 4)")
    if pixels.dtype != np.uint8:
        raise ValueError(f"Expected uint8 pixels, got {pixels.dtype}")


def freeze(pixels: np.ndarray) -> np.ndarray:
    """Mark a buffer read-only once it has been handed to a caller."""
    pixels.flags.writeable = False
    return pixels


class ImageDecoder(Protocol):
    def decode(self, source: ImageSource) -> RasterImage:
        ...


class RasterSurface(Protocol):
    def allocate(self, width: int, height: int) -> np.ndarray:
        ...


# ----------------------------
# Default collaborators
# ----------------------------

class PillowDecoder:
    """Decode anything Pillow can open into RGBA8 pixels."""

    def decode(self, source: ImageSource) -> RasterImage:
        try:
            if isinstance(source, Image.Image):
                img = source
            elif isinstance(source, (bytes, bytearray)):
                img = Image.open(BytesIO(source))
            else:
                path = os.fspath(source)
                if not os.path.exists(path):
                    raise UnsupportedInput(f"Image not found: {path}")
                img = Image.open(path)
            if img.mode.startswith("I;16") or img.mode in WIDE_MODES:
                img = _rescale_to_8bit(img)
            rgba = img.convert("RGBA")
            return RasterImage(pixels=np.asarray(rgba, dtype=np.uint8).copy())
        except UnsupportedInput:
            raise
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            logger.warning("Image decode failed: %s", e)
            raise UnsupportedInput("Image could not be decoded") from e


def _rescale_to_8bit(img: Image.Image) -> Image.Image:
    """
    Min-max rescale a wide grayscale image to 8 bits.

    A plain convert() would saturate every value above 255.
    """
    values = np.asarray(img, dtype=np.float64)
    lo = float(values.min())
    hi = float(values.max())
    rng = max(1.0, hi - lo)
    scaled = np.floor((values - lo) / rng * 255 + 0.5)
    return Image.fromarray(np.clip(scaled, 0, 255).astype(np.uint8))


class ArraySurface:
    """Hands out zeroed RGBA8 buffers."""

    def allocate(self, width: int, height: int) -> np.ndarray:
        if width <= 0 or height <= 0:
            raise RenderTargetUnavailable(f"Invalid surface size {width}x{height}")
        try:
            return np.zeros((height, width, 4), dtype=np.uint8)
        except MemoryError as e:
            raise RenderTargetUnavailable(f"Cannot allocate {width}x{height} surface") from e


def draw_to_canvas(
    image: RasterImage,
    size: int,
    surface: RasterSurface,
) -> RasterImage:
    """
    Draw an image onto a fresh size x size canvas, stretching it to fill.

    Resampling is bilinear. The canvas starts fully transparent, so the result
    is exactly the resized source.
    """
    canvas = surface.allocate(size, size)
    if canvas.shape != (size, size, 4):
        raise RenderTargetUnavailable(f"Surface returned buffer of shape {canvas.shape}")

    try:
        resized = Image.fromarray(image.pixels).resize(
            (size, size), resample=Image.BILINEAR
        )
    except (OSError, ValueError) as e:
        raise UnsupportedInput("Image could not be drawn onto the canvas") from e

    canvas[...] = np.asarray(resized, dtype=np.uint8)
    return RasterImage(pixels=canvas)


def to_png_bytes(pixels: np.ndarray) -> bytes:
    check_rgba(pixels)
    buf = BytesIO()
    Image.fromarray(np.ascontiguousarray(pixels)).save(buf, format="PNG")
    return buf.getvalue()
