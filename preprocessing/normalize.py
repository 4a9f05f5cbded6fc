"""
normalize.py

Grayscale conversion and min-max intensity stretch.

Buffers stay RGBA so they can be displayed directly as the "preprocessed"
view: R, G and B all carry the luma value and alpha passes through untouched.
"""

from __future__ import annotations

import numpy as np

from preprocessing.raster import check_rgba

# ITU-R BT.709 luma weights
LUMA_WEIGHTS = (0.2126, 0.7152, 0.0722)


def round_half_up(x: np.ndarray) -> np.ndarray:
    """Round .5 upwards, unlike numpy's round-half-to-even."""
    return np.floor(np.asarray(x, dtype=np.float64) + 0.5)


def _with_luma(luma: np.ndarray, alpha: np.ndarray) -> np.ndarray:
    out = np.empty(luma.shape + (4,), dtype=np.uint8)
    out[..., 0] = luma
    out[..., 1] = luma
    out[..., 2] = luma
    out[..., 3] = alpha
    return out


def to_grayscale(pixels: np.ndarray) -> np.ndarray:
    """
    Args:
        pixels: uint8 RGBA array of shape (H, W, 4)

    Returns:
        new uint8 RGBA array with R == G == B == luma and alpha preserved
    """
    check_rgba(pixels)
    rgb = pixels[..., :3].astype(np.float64)
    wr, wg, wb = LUMA_WEIGHTS
    y = round_half_up(wr * rgb[..., 0] + wg * rgb[..., 1] + wb * rgb[..., 2])
    return _with_luma(np.clip(y, 0, 255).astype(np.uint8), pixels[..., 3])


def normalize_intensity(gray: np.ndarray) -> np.ndarray:
    """
    Stretch luma so the darkest pixel becomes 0 and the brightest 255.

    A constant image has no range; it is treated as range 1 and every pixel
    maps to 0.
    """
    check_rgba(gray)
    luma = gray[..., 0].astype(np.int64)
    if luma.size == 0:
        return gray.copy()

    lo = int(luma.min())
    hi = int(luma.max())
    rng = max(1, hi - lo)
    n = round_half_up((luma - lo) / rng * 255)
    return _with_luma(np.clip(n, 0, 255).astype(np.uint8), gray[..., 3])


def luma_channel(buffer: np.ndarray) -> np.ndarray:
    """Luma plane (H, W) of a grayscale RGBA buffer."""
    check_rgba(buffer)
    return buffer[..., 0]
