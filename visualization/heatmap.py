"""
heatmap.py

"Attention"-style overlay built from local pixel variance.

This is not a class activation map: the classifier is linear over global
statistics and has no spatial attention. The overlay simply highlights regions
with busy local texture, which is where the edge and texture features get most
of their signal.
"""

from __future__ import annotations

import logging

import numpy as np

from preprocessing.normalize import luma_channel, round_half_up
from preprocessing.raster import RasterSurface, RenderTargetUnavailable

logger = logging.getLogger(__name__)

HEATMAP_WINDOW = 5
HEATMAP_ALPHA = 180
MIN_VARIANCE_RANGE = 1e-6


def compute_local_variance(norm: np.ndarray, window: int = HEATMAP_WINDOW) -> np.ndarray:
    """
    Population variance of luma inside a window x window neighbourhood around
    every pixel, sampled with edge replication. float32 array (H, W).
    """
    if window <= 0 or window % 2 == 0:
        raise ValueError("window must be a positive odd number")

    luma = luma_channel(norm).astype(np.int64)
    h, w = luma.shape
    radius = window // 2
    padded = np.pad(luma, radius, mode="edge")

    total = np.zeros((h, w), dtype=np.int64)
    total_sq = np.zeros((h, w), dtype=np.int64)
    for dy in range(window):
        for dx in range(window):
            v = padded[dy : dy + h, dx : dx + w]
            total += v
            total_sq += v * v

    count = window * window
    mu = total / count
    variance = total_sq / count - mu * mu
    return variance.astype(np.float32)


def normalize_field(field: np.ndarray) -> np.ndarray:
    """Rescale to [0, 1] by global min / max. float32 array."""
    values = np.asarray(field, dtype=np.float64)
    if values.size == 0:
        return np.zeros(values.shape, dtype=np.float32)
    lo = float(values.min())
    hi = float(values.max())
    rng = max(MIN_VARIANCE_RANGE, hi - lo)
    return ((values - lo) / rng).astype(np.float32)


def apply_colormap(norm_field: np.ndarray, alpha: int = HEATMAP_ALPHA) -> np.ndarray:
    """
    Map values in [0, 1] to an inferno-like RGBA8 ramp:
    dark blue at 0, through magenta, to bright red at 1.
    """
    v = np.asarray(norm_field, dtype=np.float64)
    r = round_half_up(255 * np.power(v, 0.35))
    g = round_half_up(255 * np.power(v, 1.2) * (1 - v))
    b = round_half_up(255 * (1 - v))

    out = np.empty(v.shape + (4,), dtype=np.uint8)
    out[..., 0] = np.clip(r, 0, 255)
    out[..., 1] = np.clip(g, 0, 255)
    out[..., 2] = np.clip(b, 0, 255)
    out[..., 3] = alpha
    return out


def render_heatmap(
    norm: np.ndarray,
    surface: RasterSurface,
    window: int = HEATMAP_WINDOW,
    alpha: int = HEATMAP_ALPHA,
) -> np.ndarray:
    """Full variance -> normalize -> colormap pass into a fresh surface buffer."""
    luma = luma_channel(norm)
    h, w = luma.shape
    out = surface.allocate(w, h)
    if out.shape != (h, w, 4):
        raise RenderTargetUnavailable(f"Surface returned buffer of shape {out.shape}")

    variance = compute_local_variance(norm, window=window)
    logger.debug("Local variance range: %.3f .. %.3f", float(variance.min()), float(variance.max()))
    out[...] = apply_colormap(normalize_field(variance), alpha=alpha)
    return out
